from datetime import timedelta

import pytest
from bson import ObjectId
from fastapi import HTTPException
from jose import jwt

import auth
from config import Settings

settings = Settings(access_token_secret="a-secret", refresh_token_secret="r-secret")


def test_password_hash_roundtrip():
    hashed = auth.hash_password("hunter2")
    assert hashed != "hunter2"
    assert hashed.startswith("$2b$10$")
    assert auth.verify_password("hunter2", hashed)
    assert not auth.verify_password("hunter3", hashed)
    assert not auth.verify_password("hunter2", "")


def test_token_carries_only_id_and_role():
    user = {"_id": ObjectId(), "name": "A", "email": "a@x.com", "password": "hash", "role": "admin"}
    token = auth.create_access_token(auth.token_claims(user), settings)
    claims = jwt.get_unverified_claims(token)
    assert set(claims) == {"sub", "role", "type", "exp"}
    assert claims["type"] == "access"
    assert claims["sub"] == str(user["_id"])
    assert claims["role"] == "admin"


def test_access_and_refresh_use_separate_secrets():
    claims = {"sub": str(ObjectId()), "role": "user"}
    refresh = auth.create_refresh_token(claims, settings)
    assert auth.decode_token(refresh, settings.refresh_token_secret, auth.REFRESH)["sub"] == claims["sub"]
    with pytest.raises(HTTPException) as exc:
        auth.decode_token(refresh, settings.access_token_secret)
    assert exc.value.status_code == 401


def test_token_type_checked_when_secrets_match():
    shared = Settings(access_token_secret="same", refresh_token_secret="same")
    claims = {"sub": str(ObjectId()), "role": "user"}
    access = auth.create_access_token(claims, shared)
    refresh = auth.create_refresh_token(claims, shared)
    with pytest.raises(HTTPException):
        auth.decode_token(access, "same", auth.REFRESH)
    with pytest.raises(HTTPException):
        auth.decode_token(refresh, "same", auth.ACCESS)
    assert auth.decode_token(refresh, "same", auth.REFRESH)["type"] == "refresh"


def test_expired_token_rejected():
    token = auth._encode({"sub": str(ObjectId()), "role": "user"}, "a-secret", timedelta(seconds=-10), auth.ACCESS)
    with pytest.raises(HTTPException) as exc:
        auth.decode_token(token, "a-secret")
    assert exc.value.detail == "Invalid or expired token"


def test_token_without_subject_rejected():
    token = jwt.encode({"role": "admin"}, "a-secret", algorithm=auth.ALGORITHM)
    with pytest.raises(HTTPException):
        auth.decode_token(token, "a-secret")


def test_public_user_strips_password():
    user = {"_id": ObjectId(), "email": "a@x.com", "password": "hash"}
    public = auth.public_user(user)
    assert "password" not in public
    assert public["_id"] == str(user["_id"])
    assert "password" in user
