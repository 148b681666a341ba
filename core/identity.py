"""
core/identity.py — Caller Identity & Token Gate
=================================================
Issues bearer tokens at signup/login and turns the Authorization header of
every protected request back into a Caller.

Usage in any route:
    from core.identity import Caller, get_current_caller

    async def my_endpoint(caller: Caller = Depends(get_current_caller)):
        ...
"""

import logging
import re
from dataclasses import dataclass
from typing import Optional

from fastapi import Header
from jose import JWTError

from core.crypto import crypto_engine
from core.errors import AuthenticationError, InvalidTokenError

logger = logging.getLogger("ardhi.identity")

EMAIL_PATTERN = re.compile(r"^([A-Za-z0-9_\-\.])+\@([A-Za-z0-9_\-\.])+\.([A-Za-z]{2,4})$")
WALLET_PATTERN = re.compile(r"^0x[a-fA-F0-9]{40}$")


def is_valid_email(email: str) -> bool:
    return bool(EMAIL_PATTERN.match(email or ""))


def is_valid_wallet(wallet_address: str) -> bool:
    return bool(WALLET_PATTERN.match(wallet_address or ""))


def normalize_email(email: str) -> str:
    return email.strip().lower()


def normalize_wallet(wallet_address: str) -> str:
    """Hex addresses are case-insensitive; store one canonical form."""
    return wallet_address.strip().lower()


@dataclass(frozen=True)
class Caller:
    """The decoded claims of a verified bearer token."""
    user_id: str
    email: str
    role: str
    wallet_address: str


def issue_token(user) -> str:
    """Sign a token for a User row carrying {userId, email, role, walletAddress}."""
    return crypto_engine.create_access_token(
        subject=user.id,
        extra_data={
            "userId": user.id,
            "email": user.email,
            "role": user.role,
            "walletAddress": user.wallet_address,
        },
    )


def decode_token(token: str) -> Caller:
    try:
        claims = crypto_engine.verify_token(token)
    except JWTError as exc:
        logger.warning(f"Rejected token: {exc}")
        raise InvalidTokenError()

    user_id = claims.get("userId") or claims.get("sub")
    if not user_id or not claims.get("role"):
        raise InvalidTokenError()
    return Caller(
        user_id=user_id,
        email=claims.get("email", ""),
        role=claims["role"],
        wallet_address=claims.get("walletAddress", ""),
    )


def _bearer_token(authorization: Optional[str]) -> Optional[str]:
    if not authorization:
        return None
    parts = authorization.split(" ", 1)
    if len(parts) != 2 or parts[0].lower() != "bearer" or not parts[1].strip():
        return None
    return parts[1].strip()


async def get_current_caller(authorization: Optional[str] = Header(default=None)) -> Caller:
    """
    FastAPI dependency for protected routes.
    Missing token → 401, bad or expired token → 403.
    """
    token = _bearer_token(authorization)
    if not token:
        raise AuthenticationError()
    return decode_token(token)
