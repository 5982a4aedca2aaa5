"""
Tests for the Authorization Gate
"""

import jwt
import pytest
from datetime import datetime, timedelta, timezone

from auth import Credentials, Identity, authenticate, authorize
from exceptions import Forbidden, InvalidToken, MissingToken, Unauthenticated


class TestPasswords:

    def test_hash_and_verify(self, credentials):
        hashed = credentials.hash_password("s3cret")

        assert hashed != "s3cret"
        assert credentials.verify_password("s3cret", hashed) is True
        assert credentials.verify_password("wrong", hashed) is False

    def test_verify_without_hash(self, credentials):
        assert credentials.verify_password("anything", None) is False
        assert credentials.verify_password("anything", "") is False

    def test_verify_unrecognised_hash(self, credentials):
        assert credentials.verify_password("anything", "plaintext-not-a-hash") is False


class TestAuthenticate:
    """Tests for token verification into an Identity."""

    def test_valid_token(self, credentials):
        token = credentials.issue_token("abc123", "admin")

        identity = authenticate(token, credentials)

        assert identity == Identity(identity_id="abc123", role="admin")
        assert identity.is_admin

    @pytest.mark.parametrize("token", [None, ""])
    def test_missing_token(self, credentials, token):
        with pytest.raises(MissingToken) as exc_info:
            authenticate(token, credentials)
        assert exc_info.value.message == "No token found"
        assert exc_info.value.status_code == 401

    def test_garbage_token(self, credentials):
        with pytest.raises(InvalidToken) as exc_info:
            authenticate("not.a.token", credentials)
        assert exc_info.value.message == "Invalid token"

    def test_token_signed_with_other_secret(self, credentials):
        token = Credentials(secret="other-secret", bcrypt_rounds=4).issue_token("abc123", "user")
        with pytest.raises(InvalidToken):
            authenticate(token, credentials)

    def test_expired_token(self, credentials):
        token = credentials.issue_token("abc123", "user", expires_delta=timedelta(seconds=-10))
        with pytest.raises(InvalidToken):
            authenticate(token, credentials)

    def test_token_without_subject(self, credentials):
        token = jwt.encode(
            {"role": "admin", "exp": datetime.now(timezone.utc) + timedelta(minutes=5)},
            credentials.secret, algorithm=credentials.algorithm,
        )
        with pytest.raises(InvalidToken):
            authenticate(token, credentials)

    def test_token_without_role_is_regular_user(self, credentials):
        token = jwt.encode(
            {"sub": "abc123", "exp": datetime.now(timezone.utc) + timedelta(minutes=5)},
            credentials.secret, algorithm=credentials.algorithm,
        )

        identity = authenticate(token, credentials)

        assert identity.role == "user"
        assert not identity.is_admin


class TestAuthorize:
    """Tests for role checks."""

    def test_allowed_role(self):
        identity = Identity("abc123", "admin")
        assert authorize(identity, ["admin"]) is identity

    def test_any_of_several_roles(self):
        identity = Identity("abc123", "user")
        assert authorize(identity, ("user", "admin")) is identity

    def test_wrong_role(self):
        with pytest.raises(Forbidden) as exc_info:
            authorize(Identity("abc123", "user"), ["admin"])
        assert exc_info.value.status_code == 403
        assert "user" in exc_info.value.message

    def test_no_identity(self):
        with pytest.raises(Unauthenticated):
            authorize(None, ["admin"])
