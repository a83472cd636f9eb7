"""Tests for configuration schema validation."""

import pytest
from pydantic import ValidationError

from convobridge.core.domain.config_schema import BridgeConfig, PushConfig
from convobridge.core.domain.enums import BridgeMode, OrderingPolicy


def test_defaults_serve_both_protocols() -> None:
    config = BridgeConfig()

    assert config.mode is BridgeMode.BOTH
    assert config.serves_turn and config.serves_push
    assert config.turn.port == 3989
    assert config.push.ordering is OrderingPolicy.INSERTION
    assert config.error_reply == "Oops. Something went wrong!"


@pytest.mark.parametrize(
    "push,expected",
    [
        ({}, False),
        ({"account_id": "1", "username": "bot"}, False),
        ({"account_id": "1", "username": "bot", "password": "pw"}, True),
        ({"account_id": "1", "username": "bot", "app_key": "k"}, False),
        ({"account_id": "1", "username": "bot", "app_key": "k", "secret": "s"}, True),
    ],
)
def test_has_credentials(push, expected) -> None:
    assert PushConfig(**push).has_credentials is expected


def test_push_only_without_credentials_is_rejected() -> None:
    with pytest.raises(ValidationError):
        BridgeConfig(mode="push_only")


def test_unknown_keys_are_rejected() -> None:
    with pytest.raises(ValidationError):
        BridgeConfig.model_validate({"turn": {"hostname": "x"}})
