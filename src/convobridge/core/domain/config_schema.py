"""
Configuration Schema Validation

Pydantic models for validating the bridge configuration loaded from
YAML and environment variables.
"""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from convobridge.core.domain.enums import BridgeMode, OrderingPolicy


class TurnServerConfig(BaseModel):
    """HTTP endpoint serving the request/response turn protocol."""

    model_config = ConfigDict(extra="forbid")

    host: str = Field("0.0.0.0", description="Bind address")
    port: int = Field(3989, ge=1, le=65535, description="Bind port")


class PushConfig(BaseModel):
    """Credentials and behavior of the push messaging connection."""

    model_config = ConfigDict(extra="forbid")

    account_id: Optional[str] = Field(None, description="Messaging account (brand) ID")
    username: Optional[str] = Field(None, description="Agent login name")
    password: Optional[str] = Field(None, description="Agent password")
    app_key: Optional[str] = Field(None, description="OAuth1 application key")
    secret: Optional[str] = Field(None, description="OAuth1 application secret")
    access_token: Optional[str] = Field(None, description="OAuth1 access token")
    access_token_secret: Optional[str] = Field(None, description="OAuth1 access token secret")

    csds_domain: str = Field(
        "api.liveperson.net",
        description="Domain of the service discovery API",
    )
    heartbeat_interval_seconds: float = Field(30.0, gt=0, description="Clock ping interval")
    request_timeout_seconds: float = Field(10.0, gt=0, description="Per-request timeout")
    accept_routing_offers: bool = Field(True, description="Accept every waiting ring")
    greeting: Optional[str] = Field(
        "Hello! How can I help you today?",
        description="Greeting sent when a conversation opens; may use {customer_id}",
    )
    ordering: OrderingPolicy = Field(
        OrderingPolicy.INSERTION,
        description="Order in which buffered messages are delivered",
    )

    @property
    def has_credentials(self) -> bool:
        if not self.account_id or not self.username:
            return False
        return bool(self.password or (self.app_key and self.secret))


class LoggingConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    level: str = Field("INFO", pattern="^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$")


class BridgeConfig(BaseModel):
    """Top-level bridge configuration."""

    model_config = ConfigDict(extra="forbid")

    mode: BridgeMode = Field(BridgeMode.BOTH, description="Protocols served")
    turn: TurnServerConfig = Field(default_factory=TurnServerConfig)
    push: PushConfig = Field(default_factory=PushConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    error_reply: str = Field(
        "Oops. Something went wrong!",
        description="Reply sent when the turn handler raises",
    )

    @property
    def serves_turn(self) -> bool:
        return self.mode in (BridgeMode.BOTH, BridgeMode.TURN_ONLY)

    @property
    def serves_push(self) -> bool:
        return self.mode in (BridgeMode.BOTH, BridgeMode.PUSH_ONLY)

    @model_validator(mode="after")
    def validate_push_credentials(self) -> "BridgeConfig":
        """Push-only mode cannot run without credentials."""
        if self.mode is BridgeMode.PUSH_ONLY and not self.push.has_credentials:
            raise ValueError(
                "push_only mode requires push.account_id, push.username and "
                "either push.password or push.app_key/push.secret"
            )
        return self
