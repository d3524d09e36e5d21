"""Tests for service token helpers."""

import pytest
from jose import jwt

from webchat_guard.core.security import (
    InvalidServiceTokenError,
    create_service_token,
    decode_service_token,
)
from webchat_guard.core.settings import settings


def test_service_token_round_trip() -> None:
    assert decode_service_token(create_service_token("telegram-bridge")) == "telegram-bridge"


def test_expired_token_is_invalid() -> None:
    with pytest.raises(InvalidServiceTokenError):
        decode_service_token(create_service_token("webchat-handler", expires_minutes=-5))


def test_token_signed_with_other_key_is_invalid() -> None:
    forged = jwt.encode({"sub": "webchat-handler"}, "another-key", algorithm="HS256")
    with pytest.raises(InvalidServiceTokenError):
        decode_service_token(forged)


def test_token_without_subject_is_invalid() -> None:
    token = jwt.encode({"scope": "abuse"}, settings.secret_key, algorithm=settings.jwt_algorithm)
    with pytest.raises(InvalidServiceTokenError):
        decode_service_token(token)
