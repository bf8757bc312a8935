"""
ClassJournal Backend - Password & Token Unit Tests
===================================================

Test Strategy:
    ✅ bcrypt hashes verify, reject wrong passwords, and are salted
    ✅ Tokens carry sub/name/email/role/iat/exp and verify with the secret
    ✅ Tampered, expired, and foreign-secret tokens are rejected
    ✅ Role claims are normalized and validated at decode time
"""

import base64
import json
import uuid
from datetime import datetime, timedelta, timezone

import jwt
import pytest

from classjournal.auth import security
from classjournal.config import settings
from classjournal.models.user import Role, User


def _user(role=Role.TEACHER):
    return User(id=uuid.uuid4(), name="Ada", email="ada@school.test", password="x", role=role)


class TestPasswordHashing:

    def test_hash_verifies(self):
        hashed = security.hash_password_sync("correct horse", rounds=4)
        assert hashed.startswith("$2")
        assert security.verify_password_sync("correct horse", hashed)

    def test_wrong_password_rejected(self):
        hashed = security.hash_password_sync("correct horse", rounds=4)
        assert not security.verify_password_sync("battery staple", hashed)

    def test_hashes_are_salted(self):
        assert security.hash_password_sync("same", rounds=4) != security.hash_password_sync("same", rounds=4)

    def test_work_factor_from_settings(self):
        hashed = security.hash_password_sync("pw")
        assert hashed.split("$")[2] == f"{settings.bcrypt_rounds:02d}"

    def test_garbage_hash_is_not_a_match(self):
        assert not security.verify_password_sync("pw", "not-a-bcrypt-hash")

    def test_empty_inputs_are_not_a_match(self):
        assert not security.verify_password_sync("", "$2b$04$abc")

    def test_long_passwords_truncate_to_72_bytes(self):
        base = "a" * 72
        hashed = security.hash_password_sync(base + "tail", rounds=4)
        assert security.verify_password_sync(base + "other", hashed)

    @pytest.mark.asyncio
    async def test_async_wrappers(self):
        hashed = await security.hash_password("pw")
        assert await security.verify_password("pw", hashed)
        assert not await security.verify_password("nope", hashed)


class TestTokens:

    def test_claims(self):
        user = _user()
        claims = security.decode_access_token(security.create_access_token(user))
        assert claims["sub"] == str(user.id)
        assert claims["email"] == "ada@school.test"
        assert claims["name"] == "Ada"
        assert claims["role"] == "TEACHER"
        assert claims["exp"] > claims["iat"]

    def test_expiry_follows_setting(self):
        claims = security.decode_access_token(security.create_access_token(_user()))
        assert claims["exp"] - claims["iat"] == settings.jwt_expires_minutes * 60

    def test_expired_token_rejected(self):
        past = datetime.now(timezone.utc) - timedelta(hours=2)
        token = jwt.encode(
            {"sub": str(uuid.uuid4()), "email": "a@b.c", "role": "STUDENT",
             "iat": int(past.timestamp()), "exp": int((past + timedelta(minutes=1)).timestamp())},
            settings.jwt_secret_key,
            algorithm=settings.jwt_algorithm,
        )
        with pytest.raises(jwt.ExpiredSignatureError):
            security.decode_access_token(token)

    def test_foreign_secret_rejected(self):
        token = jwt.encode({"sub": "x"}, "someone-elses-secret-key-of-decent-length", algorithm="HS256")
        with pytest.raises(jwt.InvalidTokenError):
            security.decode_access_token(token)

    def test_tampered_token_rejected(self):
        token = security.create_access_token(_user())
        header, payload, signature = token.split(".")
        claims = json.loads(base64.urlsafe_b64decode(payload + "=" * (-len(payload) % 4)))
        claims["role"] = "ADMIN"
        forged = base64.urlsafe_b64encode(json.dumps(claims).encode()).decode().rstrip("=")
        tampered = ".".join([header, forged, signature])
        with pytest.raises(jwt.InvalidTokenError):
            security.decode_access_token(tampered)


class TestIdentityFromClaims:

    def test_role_is_normalized(self):
        uid = uuid.uuid4()
        identity = security.identity_from_claims({"sub": str(uid), "email": "s@x.y", "role": "student"})
        assert identity.user_id == uid
        assert identity.role is Role.STUDENT

    def test_unknown_role_rejected(self):
        with pytest.raises(ValueError):
            security.identity_from_claims({"sub": str(uuid.uuid4()), "email": "s@x.y", "role": "janitor"})

    def test_missing_subject_rejected(self):
        with pytest.raises(ValueError):
            security.identity_from_claims({"email": "s@x.y", "role": "STUDENT"})

    def test_malformed_subject_rejected(self):
        with pytest.raises(ValueError):
            security.identity_from_claims({"sub": "42", "email": "s@x.y", "role": "STUDENT"})
