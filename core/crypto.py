"""
core/crypto.py — Cryptography Engine
======================================
Central place for hashing and token operations.
Every module imports from here — never roll your own crypto elsewhere.

Provides:
- PBKDF2 password hashing / verification
- SHA-3 content hashing               (land document fingerprints, ledger payloads)
- JWT token creation / verification
"""

import base64
import hashlib
import hmac
import json
import logging
import secrets
from datetime import datetime, timedelta
from typing import Optional

from jose import jwt
from config import settings

logger = logging.getLogger("ardhi.crypto")


class CryptoEngine:
    """
    Singleton crypto engine — used across all modules via:
        from core.crypto import crypto_engine
    """

    # ── Hashing ────────────────────────────────────────────────────────────
    def hash_sha3(self, data: str) -> str:
        """SHA-3 (256) hex digest of a string."""
        return hashlib.sha3_256(data.encode()).hexdigest()

    def hash_payload(self, data: dict) -> str:
        """Stable hash of a JSON-serialisable dict (key order does not matter)."""
        return self.hash_sha3(json.dumps(data, sort_keys=True, default=str))

    # ── Passwords ──────────────────────────────────────────────────────────
    def hash_password(self, password: str, salt: Optional[str] = None) -> str:
        """
        PBKDF2-SHA256 hash. The result embeds iterations and salt:
            pbkdf2_sha256$<iterations>$<salt>$<hash>
        """
        salt = salt or secrets.token_hex(16)
        iterations = settings.PASSWORD_HASH_ITERATIONS
        key = hashlib.pbkdf2_hmac(
            hash_name="sha256",
            password=password.encode(),
            salt=salt.encode(),
            iterations=iterations,
        )
        return f"pbkdf2_sha256${iterations}${salt}${base64.b64encode(key).decode()}"

    def verify_password(self, password: str, stored_hash: str) -> bool:
        try:
            algorithm, iterations, salt, expected = stored_hash.split("$", 3)
        except ValueError:
            logger.warning("Stored password hash has an unknown format")
            return False
        if algorithm != "pbkdf2_sha256":
            return False
        key = hashlib.pbkdf2_hmac(
            hash_name="sha256",
            password=password.encode(),
            salt=salt.encode(),
            iterations=int(iterations),
        )
        return hmac.compare_digest(base64.b64encode(key).decode(), expected)

    # ── JWT Tokens ─────────────────────────────────────────────────────────
    def create_access_token(self, subject: str, extra_data: dict = None) -> str:
        """
        Create a signed JWT token for a user.
        subject = user ID.
        """
        payload = {
            "sub": subject,
            "exp": datetime.utcnow() + timedelta(minutes=settings.JWT_EXPIRY_MINUTES),
            "iat": datetime.utcnow(),
        }
        if extra_data:
            payload.update(extra_data)
        return jwt.encode(payload, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)

    def verify_token(self, token: str) -> dict:
        """Verify and decode a JWT. Raises JWTError if invalid/expired."""
        return jwt.decode(token, settings.JWT_SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])


# Singleton instance, import this everywhere
crypto_engine = CryptoEngine()
