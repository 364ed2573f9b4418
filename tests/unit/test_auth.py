from datetime import UTC, datetime, timedelta

import jwt
import pytest
from fastapi import HTTPException

from alive_ping.auth import verify

SECRET = "test-secret-with-at-least-32-bytes!"


def make_token(claims: dict, secret: str = SECRET) -> str:
    return jwt.encode(claims, secret, algorithm="HS256")


def test_verify_jwt_valid(monkeypatch):
    monkeypatch.setattr(verify.settings, "JWT_SECRET", SECRET)
    token = make_token({"userId": 7, "exp": datetime.now(UTC) + timedelta(hours=1)})

    claims = verify.verify_jwt(token)

    assert claims["userId"] == 7
    assert verify.current_user_id(claims) == 7


def test_verify_jwt_expired(monkeypatch):
    monkeypatch.setattr(verify.settings, "JWT_SECRET", SECRET)
    token = make_token({"userId": 7, "exp": datetime.now(UTC) - timedelta(minutes=1)})

    with pytest.raises(HTTPException) as exc_info:
        verify.verify_jwt(token)

    assert exc_info.value.status_code == 401
    assert exc_info.value.detail == "Token has expired"


def test_verify_jwt_wrong_secret(monkeypatch):
    monkeypatch.setattr(verify.settings, "JWT_SECRET", SECRET)

    with pytest.raises(HTTPException) as exc_info:
        verify.verify_jwt(make_token({"userId": 7}, secret="another-secret-with-32-plus-bytes!!"))

    assert exc_info.value.status_code == 401


def test_verify_jwt_without_secret_configured(monkeypatch):
    monkeypatch.setattr(verify.settings, "JWT_SECRET", None)

    with pytest.raises(HTTPException) as exc_info:
        verify.verify_jwt("anything")

    assert exc_info.value.status_code == 503


def test_current_user_id_falls_back_to_sub():
    assert verify.current_user_id({"sub": "12"}) == 12

    with pytest.raises(HTTPException) as exc_info:
        verify.current_user_id({"sub": "not-a-number"})
    assert exc_info.value.status_code == 401
