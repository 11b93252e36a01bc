# =============================================================================
# CORRIDOR ACCESS SYSTEM - CORE SECURITY MODULE
# =============================================================================
# File: core/security.py
# Description: Password hashing, session cookie signing and token primitives
#              Argon2id with bcrypt fallback, HS256 JWS for cookie values
# =============================================================================

from typing import Optional
import hashlib
import hmac
import secrets

from passlib.context import CryptContext
from argon2 import PasswordHasher
from argon2.exceptions import VerifyMismatchError, VerificationError, InvalidHash
from jose import jws
from jose.exceptions import JOSEError

from core.config import settings, Settings


# =============================================================================
# PASSWORD HASHER CONFIGURATION
# =============================================================================

class PasswordManager:
    """
    ┌─────────────────────────────────────────────────────────────────────────┐
    │                    PASSWORD HASHING MANAGER                              │
    │  Implements OWASP recommended Argon2id with Bcrypt fallback            │
    │  Supports automatic algorithm upgrade on password verification         │
    └─────────────────────────────────────────────────────────────────────────┘

    Algorithm Selection:
        - Primary:  Argon2id (OWASP recommended for new passwords)
        - Fallback: Bcrypt (accounts imported from the legacy user table)
    """

    def __init__(self, config: Optional[Settings] = None):
        config = config or settings

        self._argon2_hasher = PasswordHasher(
            time_cost=config.argon2_time_cost,
            memory_cost=config.argon2_memory_cost,
            parallelism=config.argon2_parallelism,
            hash_len=32,
            salt_len=16,
        )

        # Legacy PHP password_hash() output uses the $2y$ bcrypt prefix
        self._bcrypt_context = CryptContext(
            schemes=["bcrypt"],
            deprecated="auto",
            bcrypt__rounds=config.bcrypt_rounds,
        )

        self._preferred_algorithm = config.password_hash_algorithm
        self._dummy_hash: Optional[str] = None

    def hash_password(self, password: str) -> str:
        """
        Hash a password using the configured algorithm.

        Args:
            password: Plain text password to hash

        Returns:
            str: Hashed password string
        """
        if self._preferred_algorithm == "argon2":
            return self._argon2_hasher.hash(password)
        return self._bcrypt_context.hash(password)

    def verify_password(
        self,
        plain_password: str,
        hashed_password: Optional[str]
    ) -> tuple[bool, bool]:
        """
        Verify a password against its hash with algorithm detection.

        Args:
            plain_password: Plain text password to verify
            hashed_password: Stored password hash

        Returns:
            tuple[bool, bool]: (is_valid, needs_rehash)
        """
        if not hashed_password:
            return False, False

        if hashed_password.startswith("$argon2"):
            try:
                self._argon2_hasher.verify(hashed_password, plain_password)
            except (VerifyMismatchError, VerificationError, InvalidHash):
                return False, False
            return True, self._argon2_hasher.check_needs_rehash(hashed_password)

        if hashed_password.startswith("$2"):
            try:
                is_valid = self._bcrypt_context.verify(plain_password, hashed_password)
            except ValueError:
                return False, False
            return is_valid, is_valid and self._preferred_algorithm == "argon2"

        return False, False

    def burn(self, password: str) -> None:
        """
        Run one verification against a throwaway hash.

        Called when the account is unknown so that response time matches
        a wrong-password attempt.
        """
        if self._dummy_hash is None:
            self._dummy_hash = self.hash_password(generate_secure_token(16))
        self.verify_password(password, self._dummy_hash)


# =============================================================================
# SESSION COOKIE SIGNING
# =============================================================================

class CookieSigner:
    """
    Signs and verifies session cookie values as compact HS256 JWS strings.

    A cookie whose signature doesn't verify is treated as absent, so a
    forged or truncated session id never reaches the session store.
    """

    ALGORITHM = "HS256"

    def __init__(self, secret_key: Optional[str] = None):
        self._secret_key = secret_key or settings.secret_key

    def sign(self, value: str) -> str:
        return jws.sign(value.encode("utf-8"), self._secret_key, algorithm=self.ALGORITHM)

    def unsign(self, signed_value: Optional[str]) -> Optional[str]:
        """
        Return the original value, or None when the signature is invalid.
        """
        if not signed_value:
            return None
        try:
            payload = jws.verify(signed_value, self._secret_key, algorithms=[self.ALGORITHM])
        except JOSEError:
            return None
        return payload.decode("utf-8")


# =============================================================================
# UTILITY FUNCTIONS
# =============================================================================

def generate_secure_token(length: int = 32) -> str:
    """
    Generate a cryptographically secure random token.

    Args:
        length: Number of bytes (result will be 2x in hex)

    Returns:
        str: Hex-encoded random token
    """
    return secrets.token_hex(length)


def generate_session_id() -> str:
    """Generate a 64 character session identifier."""
    return secrets.token_hex(32)


def generate_verification_code(length: int = 6) -> str:
    """Generate a numeric verification code."""
    return "".join(secrets.choice("0123456789") for _ in range(length))


def hash_token(token: str) -> str:
    """SHA-256 digest used to persist remember-me and reset tokens."""
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def fingerprint_user_agent(user_agent: Optional[str]) -> str:
    """Stable fingerprint of the User-Agent header stored in session data."""
    return hashlib.md5((user_agent or "").encode("utf-8")).hexdigest()


def tokens_match(expected: Optional[str], submitted: Optional[str]) -> bool:
    """Constant-time comparison that treats a missing side as a mismatch."""
    if not expected or not submitted:
        return False
    return hmac.compare_digest(expected.encode("utf-8"), submitted.encode("utf-8"))


# =============================================================================
# SINGLETON INSTANCES
# =============================================================================

password_manager = PasswordManager()
cookie_signer = CookieSigner()
