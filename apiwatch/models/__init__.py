"""
Database models package.

Import all models here so SQLAlchemy can resolve relationships.
Other modules can import from here: `from apiwatch.models import Alert, AlertRule`
"""

from apiwatch.models.user import User
from apiwatch.models.api_metric import ApiMetric
from apiwatch.models.alert_rule import AlertRule
from apiwatch.models.alert import Alert
from apiwatch.models.notification_channel import NotificationChannel
from apiwatch.models.notification_preference import NotificationPreference
from apiwatch.models.alert_delivery import AlertDelivery

# Export all models
__all__ = [
    "User",
    "ApiMetric",
    "AlertRule",
    "Alert",
    "NotificationChannel",
    "NotificationPreference",
    "AlertDelivery",
]
