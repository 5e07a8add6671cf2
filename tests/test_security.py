"""
Tests for the security module.

These tests verify:
1. JWT tokens are created and verified properly
2. Invalid/expired tokens are rejected
3. The subject (user id) is extracted only from valid tokens
"""

from datetime import timedelta

from jose import jwt

from apiwatch.core.config import settings
from apiwatch.core.security import create_access_token, get_token_subject, verify_token


# =============================================================================
# JWT TOKEN TESTS
# =============================================================================


class TestJWTTokens:
    """Test JWT token creation and verification."""

    def test_create_access_token_returns_string(self):
        """create_access_token should return a JWT string."""
        token = create_access_token(data={"sub": "123"})

        # JWT has 3 parts separated by dots
        parts = token.split(".")
        assert len(parts) == 3, "JWT should have 3 parts (header.payload.signature)"

    def test_verify_token_valid(self):
        """verify_token should decode a valid token."""
        token = create_access_token(data={"sub": "42", "role": "ADMIN"})

        payload = verify_token(token)

        assert payload is not None, "Valid token should decode"
        assert payload["sub"] == "42"
        assert payload["role"] == "ADMIN", "Custom claims should be preserved"
        assert "exp" in payload, "Token should have expiration claim"

    def test_verify_token_invalid_signature(self):
        """verify_token should reject tokens with invalid signature."""
        token = create_access_token(data={"sub": "123"})

        # Tamper with the token (change last character)
        tampered_token = token[:-1] + ("X" if token[-1] != "X" else "Y")

        assert verify_token(tampered_token) is None, "Tampered token should be rejected"

    def test_verify_token_wrong_secret(self):
        """Tokens signed by someone else are rejected."""
        token = jwt.encode({"sub": "1"}, "not-our-secret", algorithm=settings.jwt_algorithm)

        assert verify_token(token) is None

    def test_verify_token_expired(self):
        token = create_access_token(data={"sub": "123"}, expires_delta=timedelta(seconds=-10))

        assert verify_token(token) is None, "Expired token should be rejected"

    def test_verify_token_malformed(self):
        """verify_token should reject malformed tokens."""
        malformed_tokens = [
            "not.a.valid.jwt",
            "completely_invalid",
            "",
            "a.b",  # Only 2 parts
        ]

        for bad_token in malformed_tokens:
            payload = verify_token(bad_token)
            assert payload is None, f"Malformed token '{bad_token}' should be rejected"

    def test_get_token_subject_valid(self):
        token = create_access_token(data={"sub": "7"})

        assert get_token_subject(token) == "7"

    def test_get_token_subject_invalid_token(self):
        assert get_token_subject("invalid.token.here") is None

    def test_get_token_subject_no_sub_claim(self):
        """get_token_subject should return None if no 'sub' claim."""
        token = create_access_token(data={"user_id": "123"})  # Wrong key

        assert get_token_subject(token) is None, "Missing 'sub' claim should return None"
