"""
Pydantic schemas for notification channels and preferences.

Channel config is a tagged union keyed by the channel `type`: the request
body `{"type": "webhook", "config": {...}}` is validated against exactly one
config model, so a channel whose config does not match its type cannot be
created.
"""

from datetime import datetime
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import AnyHttpUrl, BaseModel, EmailStr, Field, field_serializer
from pydantic import ValidationError as PydanticValidationError

from apiwatch.core.constants import RuleType, Severity
from apiwatch.core.exceptions import ValidationError

# Shown in place of a stored webhook secret
SECRET_MASK = "********"


# =============================================================================
# CONFIG VARIANTS
# =============================================================================


class _ChannelConfig(BaseModel):
    model_config = {"extra": "forbid"}


class EmailConfig(_ChannelConfig):
    address: EmailStr


class WebhookConfig(_ChannelConfig):
    url: AnyHttpUrl
    secret: Optional[str] = Field(default=None, min_length=1)
    headers: dict[str, str] = Field(default_factory=dict)
    method: Literal["POST", "PUT"] = "POST"


class SlackConfig(_ChannelConfig):
    webhook_url: AnyHttpUrl
    channel: Optional[str] = None
    username: Optional[str] = None


class DiscordConfig(_ChannelConfig):
    webhook_url: AnyHttpUrl
    username: Optional[str] = None
    avatar_url: Optional[AnyHttpUrl] = None


class TeamsConfig(_ChannelConfig):
    webhook_url: AnyHttpUrl


class InAppConfig(_ChannelConfig):
    pass


ChannelConfig = Union[EmailConfig, WebhookConfig, SlackConfig, DiscordConfig, TeamsConfig, InAppConfig]

CONFIG_MODELS: dict[str, type[_ChannelConfig]] = {
    "email": EmailConfig,
    "webhook": WebhookConfig,
    "slack": SlackConfig,
    "discord": DiscordConfig,
    "teams": TeamsConfig,
    "in_app": InAppConfig,
}


def parse_channel_config(channel_type: str, raw: dict[str, Any]) -> ChannelConfig:
    """
    Validate a raw config dict against the model for `channel_type`.

    Raises:
        ValidationError: unknown type or config not matching the type
    """
    model = CONFIG_MODELS.get(channel_type)
    if model is None:
        raise ValidationError(f"Unsupported channel type: {channel_type}")
    try:
        return model.model_validate(raw or {})
    except PydanticValidationError as exc:
        raise ValidationError(
            f"Invalid {channel_type} channel configuration",
            details=[
                {"field": ".".join(str(p) for p in err["loc"]), "message": err["msg"]}
                for err in exc.errors()
            ],
        ) from exc


# =============================================================================
# REQUEST SCHEMAS
# =============================================================================


class _ChannelCreateBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)


class EmailChannelCreate(_ChannelCreateBase):
    type: Literal["email"]
    config: EmailConfig


class WebhookChannelCreate(_ChannelCreateBase):
    type: Literal["webhook"]
    config: WebhookConfig


class SlackChannelCreate(_ChannelCreateBase):
    type: Literal["slack"]
    config: SlackConfig


class DiscordChannelCreate(_ChannelCreateBase):
    type: Literal["discord"]
    config: DiscordConfig


class TeamsChannelCreate(_ChannelCreateBase):
    type: Literal["teams"]
    config: TeamsConfig


class InAppChannelCreate(_ChannelCreateBase):
    type: Literal["in_app"]
    config: InAppConfig = Field(default_factory=InAppConfig)


ChannelCreate = Annotated[
    Union[
        EmailChannelCreate,
        WebhookChannelCreate,
        SlackChannelCreate,
        DiscordChannelCreate,
        TeamsChannelCreate,
        InAppChannelCreate,
    ],
    Field(discriminator="type"),
]


class ChannelUpdate(BaseModel):
    """
    Partial update. `config` is re-validated against the channel's existing
    type (the type itself cannot change).
    """

    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    config: Optional[dict[str, Any]] = None
    is_active: Optional[bool] = None


class PreferenceCreate(BaseModel):
    """Route alerts of one type and severity to a channel."""

    alert_type: RuleType
    severity: Severity
    channel_id: int
    is_enabled: bool = True


# =============================================================================
# RESPONSE SCHEMAS
# =============================================================================


class ChannelResponse(BaseModel):
    id: int
    user_id: int
    name: str
    type: str
    config: dict[str, Any]
    is_active: bool
    is_verified: bool
    failure_count: int
    needs_attention: bool
    last_used: Optional[datetime]
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}

    @field_serializer("config")
    def _mask_secret(self, config: dict[str, Any]) -> dict[str, Any]:
        if config.get("secret"):
            return {**config, "secret": SECRET_MASK}
        return config


class ChannelTestResponse(BaseModel):
    success: bool
    response: Optional[dict[str, Any]] = None
    error: Optional[str] = None


class PreferenceResponse(BaseModel):
    id: int
    alert_type: str
    severity: str
    channel_id: int
    is_enabled: bool
    created_at: datetime

    model_config = {"from_attributes": True}
