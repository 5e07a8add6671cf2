"""
Channel senders.

One sender per channel type. Every sender turns an Alert into the payload
its destination expects and reports the outcome as a DeliveryResult. Senders
never raise for transport problems (timeouts, DNS, refused connections,
non-2xx responses); those become `success=False` and drive the retry state
machine in the dispatcher.

Message text comes from per-channel default templates with `{name}`
placeholders. Unknown placeholders are left as-is.
"""

import asyncio
import hashlib
import hmac
import json
import logging
import smtplib
from dataclasses import dataclass, field
from email.mime.text import MIMEText
from email.utils import make_msgid
from typing import Any, Optional

import httpx

from apiwatch.core.config import settings
from apiwatch.models import Alert

logger = logging.getLogger(__name__)


@dataclass
class DeliveryResult:
    """Outcome of one send attempt."""
    success: bool
    response: Optional[dict[str, Any]] = None
    error: Optional[str] = None


# =============================================================================
# TEMPLATES
# =============================================================================


class SafeDict(dict):
    """Dict subclass that returns placeholder for missing keys."""

    def __missing__(self, key: str) -> str:
        return f"{{{key}}}"


DEFAULT_TEMPLATES: dict[str, dict[str, str]] = {
    "email": {
        "subject": "[{severity_label}] {alert_title}",
        "body": (
            "Alert: {alert_title}\n"
            "\n"
            "{alert_message}\n"
            "\n"
            "Details:\n"
            "- Type: {alert_type}\n"
            "- Severity: {severity}\n"
            "- Time: {formatted_time}\n"
            "\n"
            "View in dashboard: {alert_url}"
        ),
    },
    "slack": {
        "body": ":warning: *{alert_title}*\n\n{alert_message}\n\n<{alert_url}|View in Dashboard>",
    },
    "discord": {"body": "{alert_message}"},
    "teams": {"body": "{alert_message}"},
}

SEVERITY_COLORS = {
    "low": "#36a2eb",
    "medium": "#ffce56",
    "high": "#ff6384",
    "critical": "#dc3545",
}
DEFAULT_COLOR = "#6c757d"


def render_template(template: str, variables: dict[str, Any]) -> str:
    """
    Format a template with alert variables.

    Supports placeholders like {alert_title}, {severity}, {alert_url}.
    Unknown placeholders are left as-is; a malformed template is returned
    unchanged.
    """
    try:
        return template.format_map(SafeDict(variables))
    except (ValueError, IndexError, AttributeError):
        return template


def severity_color(severity: str) -> str:
    return SEVERITY_COLORS.get(severity, DEFAULT_COLOR)


def build_context(alert: Alert) -> dict[str, Any]:
    """Template variables for one alert."""
    dashboard_url = settings.dashboard_url.rstrip("/")
    return {
        "alert_id": alert.id,
        "alert_title": alert.title,
        "alert_message": alert.message,
        "alert_type": alert.type,
        "severity": alert.severity,
        "severity_label": alert.severity.upper(),
        "timestamp": alert.created_at.isoformat() + "Z",
        "formatted_time": alert.created_at.strftime("%Y-%m-%d %H:%M:%S UTC"),
        "dashboard_url": dashboard_url,
        "alert_url": f"{dashboard_url}/dashboard/alerts/{alert.id}",
        "provider_id": alert.provider_id,
        "metadata": alert.alert_metadata or {},
    }


def sign_payload(secret: str, body: bytes) -> str:
    """HMAC-SHA256 signature header value for a webhook body."""
    digest = hmac.new(secret.encode(), body, hashlib.sha256).hexdigest()
    return f"sha256={digest}"


# =============================================================================
# BASE SENDERS
# =============================================================================


class ChannelSender:
    """Base class: deliver one alert to one channel config."""

    channel_type: str = ""

    async def send(
        self,
        config: dict[str, Any],
        alert: Alert,
        context: dict[str, Any],
    ) -> DeliveryResult:
        raise NotImplementedError


class HttpSender(ChannelSender):
    """Shared HTTP plumbing for webhook-style destinations."""

    async def _request(
        self,
        url: str,
        body: bytes,
        headers: dict[str, str],
        method: str = "POST",
    ) -> DeliveryResult:
        """
        Send a pre-serialized body and map the outcome to a DeliveryResult.

        The body is sent byte-for-byte (content=) so signatures computed over
        it stay valid.
        """
        timeout = settings.delivery_http_timeout_seconds
        try:
            async with httpx.AsyncClient(timeout=timeout) as client:
                response = await client.request(method, url, content=body, headers=headers)
        except httpx.TimeoutException:
            return DeliveryResult(success=False, error=f"Request timed out after {timeout:g}s")
        except httpx.HTTPError as exc:
            return DeliveryResult(success=False, error=f"Request failed: {exc.__class__.__name__}: {exc}")

        if not response.is_success:
            return DeliveryResult(
                success=False,
                error=f"HTTP {response.status_code}: {response.reason_phrase}",
                response={"status": response.status_code},
            )

        return DeliveryResult(
            success=True,
            response={"status": response.status_code, "data": response.text[:1000]},
        )

    async def _post_json(self, url: str, payload: dict[str, Any]) -> DeliveryResult:
        body = json.dumps(payload, default=str).encode()
        headers = {"Content-Type": "application/json", "User-Agent": settings.user_agent}
        return await self._request(url, body, headers)


# =============================================================================
# CHANNEL SENDERS
# =============================================================================


class EmailSender(ChannelSender):
    """Plain-text email over SMTP with STARTTLS, run in a worker thread."""

    channel_type = "email"

    async def send(self, config, alert, context) -> DeliveryResult:
        if not settings.smtp_host:
            return DeliveryResult(success=False, error="SMTP not configured")

        template = DEFAULT_TEMPLATES["email"]
        msg = MIMEText(render_template(template["body"], context), "plain", "utf-8")
        msg["Subject"] = render_template(template["subject"], context)
        msg["From"] = settings.smtp_from_address
        msg["To"] = config["address"]
        msg["Message-ID"] = make_msgid(domain="apiwatch")

        try:
            await asyncio.to_thread(self._send_smtp, msg)
        except (smtplib.SMTPException, OSError) as exc:
            logger.warning("Email to %s failed: %s", config["address"], exc)
            return DeliveryResult(success=False, error=f"SMTP error: {exc}")

        return DeliveryResult(
            success=True,
            response={"to": config["address"], "message_id": msg["Message-ID"]},
        )

    @staticmethod
    def _send_smtp(msg: MIMEText) -> None:
        with smtplib.SMTP(
            settings.smtp_host,
            settings.smtp_port,
            timeout=settings.delivery_http_timeout_seconds,
        ) as server:
            server.starttls()
            if settings.smtp_username:
                server.login(settings.smtp_username, settings.smtp_password)
            server.send_message(msg)


class WebhookSender(HttpSender):
    """
    Generic JSON webhook.

    With a `secret` in the config, the request carries
    `X-Apiwatch-Signature: sha256=<hex>` computed over the exact body bytes.
    """

    channel_type = "webhook"

    def build_payload(self, alert: Alert, context: dict[str, Any]) -> dict[str, Any]:
        return {
            "alert_id": alert.id,
            "title": alert.title,
            "message": alert.message,
            "type": alert.type,
            "severity": alert.severity,
            "timestamp": context["timestamp"],
            "dashboard_url": context["dashboard_url"],
            "alert_url": context["alert_url"],
            "metadata": context["metadata"],
        }

    async def send(self, config, alert, context) -> DeliveryResult:
        # Serialize once: the signature must cover exactly what is sent
        body = json.dumps(self.build_payload(alert, context), default=str).encode()

        headers = {
            "Content-Type": "application/json",
            "User-Agent": settings.user_agent,
            **(config.get("headers") or {}),
        }
        if config.get("secret"):
            headers[settings.webhook_signature_header] = sign_payload(config["secret"], body)

        return await self._request(
            config["url"],
            body,
            headers,
            method=config.get("method") or "POST",
        )


class SlackSender(HttpSender):
    channel_type = "slack"

    async def send(self, config, alert, context) -> DeliveryResult:
        payload: dict[str, Any] = {
            "username": config.get("username") or "Apiwatch",
            "text": render_template(DEFAULT_TEMPLATES["slack"]["body"], context),
            "attachments": [
                {
                    "color": severity_color(alert.severity),
                    "fields": [
                        {"title": "Alert Type", "value": alert.type, "short": True},
                        {"title": "Severity", "value": context["severity_label"], "short": True},
                        {"title": "Time", "value": context["formatted_time"], "short": True},
                    ],
                }
            ],
        }
        if config.get("channel"):
            payload["channel"] = config["channel"]

        return await self._post_json(config["webhook_url"], payload)


class DiscordSender(HttpSender):
    channel_type = "discord"

    async def send(self, config, alert, context) -> DeliveryResult:
        payload: dict[str, Any] = {
            "username": config.get("username") or "Apiwatch",
            "embeds": [
                {
                    "title": alert.title,
                    "description": render_template(DEFAULT_TEMPLATES["discord"]["body"], context),
                    # Discord wants the colour as an integer
                    "color": int(severity_color(alert.severity).lstrip("#"), 16),
                    "fields": [
                        {"name": "Type", "value": alert.type, "inline": True},
                        {"name": "Severity", "value": context["severity_label"], "inline": True},
                        {"name": "Time", "value": context["formatted_time"], "inline": True},
                    ],
                    "timestamp": context["timestamp"],
                }
            ],
        }
        if config.get("avatar_url"):
            payload["avatar_url"] = config["avatar_url"]

        return await self._post_json(config["webhook_url"], payload)


class TeamsSender(HttpSender):
    """Legacy Office 365 connector MessageCard."""

    channel_type = "teams"

    async def send(self, config, alert, context) -> DeliveryResult:
        payload = {
            "@type": "MessageCard",
            "@context": "http://schema.org/extensions",
            "themeColor": severity_color(alert.severity).lstrip("#"),
            "summary": alert.title,
            "sections": [
                {
                    "activityTitle": alert.title,
                    "activitySubtitle": render_template(DEFAULT_TEMPLATES["teams"]["body"], context),
                    "facts": [
                        {"name": "Type", "value": alert.type},
                        {"name": "Severity", "value": context["severity_label"]},
                        {"name": "Time", "value": context["formatted_time"]},
                    ],
                }
            ],
            "potentialAction": [
                {
                    "@type": "OpenUri",
                    "name": "View in Dashboard",
                    "targets": [{"os": "default", "uri": context["alert_url"]}],
                }
            ],
        }
        return await self._post_json(config["webhook_url"], payload)


class InAppSender(ChannelSender):
    """The Alert row itself is the in-app notification; nothing to send."""

    channel_type = "in_app"

    async def send(self, config, alert, context) -> DeliveryResult:
        return DeliveryResult(success=True, response={"delivered": "in_app"})


# =============================================================================
# REGISTRY
# =============================================================================


@dataclass
class SenderRegistry:
    """Senders keyed by channel type. Tests swap entries for fakes."""
    senders: dict[str, ChannelSender] = field(default_factory=dict)

    def register(self, sender: ChannelSender) -> None:
        self.senders[sender.channel_type] = sender

    def get(self, channel_type: str) -> Optional[ChannelSender]:
        return self.senders.get(channel_type)


def default_registry() -> SenderRegistry:
    registry = SenderRegistry()
    for sender in (
        EmailSender(),
        WebhookSender(),
        SlackSender(),
        DiscordSender(),
        TeamsSender(),
        InAppSender(),
    ):
        registry.register(sender)
    return registry
