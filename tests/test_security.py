# =============================================================================
# CORRIDOR ACCESS SYSTEM - SECURITY PRIMITIVE TESTS
# =============================================================================
# File: tests/test_security.py
# Description: Unit tests for password hashing, cookie signing, token
#              helpers, dot-path utilities and client IP resolution
# =============================================================================

import pytest
from passlib.context import CryptContext
from starlette.requests import Request

from core.context import is_trusted_proxy, resolve_client_ip
from core.security import (
    CookieSigner,
    PasswordManager,
    fingerprint_user_agent,
    generate_secure_token,
    generate_session_id,
    generate_verification_code,
    hash_token,
    tokens_match,
)
from utils.helpers import get_path, has_path, mask_email, mask_ip, remove_path, set_path, strip_keys


class TestPasswordManager:
    """Test suite for PasswordManager."""

    def test_hash_password_argon2(self):
        """Test password hashing with Argon2."""
        pm = PasswordManager()
        password = "TestPassword123!"

        hashed = pm.hash_password(password)

        assert hashed != password
        assert hashed.startswith("$argon2")

    def test_verify_password_correct(self):
        pm = PasswordManager()
        hashed = pm.hash_password("TestPassword123!")

        is_valid, needs_rehash = pm.verify_password("TestPassword123!", hashed)

        assert is_valid is True
        assert needs_rehash is False

    def test_verify_password_incorrect(self):
        pm = PasswordManager()
        hashed = pm.hash_password("TestPassword123!")

        is_valid, _ = pm.verify_password("WrongPassword456!", hashed)

        assert is_valid is False

    def test_different_passwords_different_hashes(self):
        """Same password produces different hashes (salting)."""
        pm = PasswordManager()

        hash1 = pm.hash_password("TestPassword123!")
        hash2 = pm.hash_password("TestPassword123!")

        assert hash1 != hash2
        assert pm.verify_password("TestPassword123!", hash1)[0] is True
        assert pm.verify_password("TestPassword123!", hash2)[0] is True

    def test_legacy_bcrypt_hash_verifies_and_needs_rehash(self):
        """Accounts imported with PHP password_hash() output keep working."""
        legacy = CryptContext(schemes=["bcrypt"], bcrypt__rounds=4).hash("legacy-secret")

        is_valid, needs_rehash = PasswordManager().verify_password("legacy-secret", legacy)

        assert is_valid is True
        assert needs_rehash is True

    @pytest.mark.parametrize("stored", [None, "", "plaintext", "$unknown$hash"])
    def test_unusable_hashes_never_verify(self, stored):
        assert PasswordManager().verify_password("anything", stored) == (False, False)

    def test_burn_does_not_raise(self):
        PasswordManager().burn("whatever")


class TestCookieSigner:

    def test_round_trip(self):
        signer = CookieSigner("a" * 32)
        session_id = generate_session_id()

        signed = signer.sign(session_id)

        assert signed != session_id
        assert signer.unsign(signed) == session_id

    @pytest.mark.parametrize("value", [None, "", "garbage", "a.b.c"])
    def test_invalid_values_rejected(self, value):
        assert CookieSigner("a" * 32).unsign(value) is None

    def test_other_key_rejected(self):
        signed = CookieSigner("a" * 32).sign("session")

        assert CookieSigner("b" * 32).unsign(signed) is None


class TestUtilityFunctions:
    """Test suite for utility functions."""

    def test_generate_secure_token(self):
        token = generate_secure_token(32)

        assert len(token) == 64
        assert token != generate_secure_token(32)

    def test_generate_session_id(self):
        assert len(generate_session_id()) == 64

    def test_generate_verification_code(self):
        code = generate_verification_code(8)

        assert len(code) == 8
        assert code.isdigit()

    def test_hash_token_is_stable(self):
        assert hash_token("abc") == hash_token("abc")
        assert hash_token("abc") != hash_token("abd")
        assert len(hash_token("abc")) == 64

    def test_fingerprint_user_agent(self):
        assert fingerprint_user_agent(None) == fingerprint_user_agent("")
        assert fingerprint_user_agent("Firefox") != fingerprint_user_agent("Chrome")

    def test_tokens_match(self):
        assert tokens_match("abc", "abc") is True
        assert tokens_match("abc", "abd") is False
        assert tokens_match(None, "abc") is False
        assert tokens_match("abc", "") is False

    def test_masking(self):
        assert mask_email("officer@example.com") == "o***@example.com"
        assert mask_ip("192.168.1.100") == "192.168.x.x"


class TestDotPaths:

    def test_set_creates_intermediate_maps(self):
        data = {}

        set_path(data, "a.b.c", 1)

        assert data == {"a": {"b": {"c": 1}}}
        assert get_path(data, "a.b") == {"c": 1}

    def test_set_replaces_scalar_segment(self):
        data = {"a": 5}

        set_path(data, "a.b", 1)

        assert data == {"a": {"b": 1}}

    def test_get_missing_returns_default(self):
        data = {"a": {"b": 1}}

        assert get_path(data, "a.x", "dflt") == "dflt"
        assert get_path(data, "a.b.c", "dflt") == "dflt"

    def test_has_and_remove(self):
        data = {"a": {"b": None}}

        assert has_path(data, "a.b") is True
        assert remove_path(data, "a.b") is True
        assert has_path(data, "a.b") is False
        assert remove_path(data, "a.b") is False

    def test_strip_keys(self):
        assert strip_keys({"__created": 1, "user": {}}, "__") == {"user": {}}


def _request(peer, headers=None):
    scope = {
        "type": "http",
        "method": "GET",
        "path": "/",
        "query_string": b"",
        "headers": [(k.lower().encode(), v.encode()) for k, v in (headers or {}).items()],
        "client": (peer, 50000),
    }
    return Request(scope)


class TestClientAddress:
    """Client IP resolution behind proxies."""

    def test_forwarded_headers_ignored_from_untrusted_peer(self):
        request = _request("198.51.100.20", {"X-Forwarded-For": "203.0.113.7", "X-Real-IP": "203.0.113.8"})

        assert resolve_client_ip(request, trusted_proxies=[]) == "198.51.100.20"
        assert resolve_client_ip(request, trusted_proxies=["10.0.0.0/8"]) == "198.51.100.20"

    def test_forwarded_for_honoured_from_trusted_proxy(self):
        request = _request("10.0.0.2", {"X-Forwarded-For": "192.0.2.50, 203.0.113.7, 10.0.0.9"})

        assert resolve_client_ip(request, trusted_proxies=["10.0.0.0/8"]) == "203.0.113.7"

    def test_real_ip_from_trusted_proxy(self):
        request = _request("10.0.0.2", {"X-Real-IP": "203.0.113.8"})

        assert resolve_client_ip(request, trusted_proxies=["10.0.0.2"]) == "203.0.113.8"

    def test_trusted_proxy_matching(self):
        assert is_trusted_proxy("10.1.2.3", ["10.0.0.0/8"]) is True
        assert is_trusted_proxy("11.1.2.3", ["10.0.0.0/8", "not-an-ip"]) is False
        assert is_trusted_proxy("testclient", ["10.0.0.0/8"]) is False
        assert is_trusted_proxy(None, ["10.0.0.0/8"]) is False
