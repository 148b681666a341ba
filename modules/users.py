"""
modules/users.py — User Accounts Module
=========================================
Signup, registrar creation, login and profile management.

Flow:
    API route → validate input → uniqueness checks → save DB → issue token
"""

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy import select, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from core.crypto import crypto_engine
from core.errors import AuthenticationError, ConflictError, NotFoundError, ValidationError
from core.identity import (
    Caller, issue_token, is_valid_email, is_valid_wallet, normalize_email, normalize_wallet,
)
from core.permissions import Capability, require_capability
from db.models import User, Role

logger = logging.getLogger("ardhi.modules.users")

# Defaults for the registrar's office, used when register_govt omits them
REGISTRAR_DEFAULTS = {
    "name": "Government Registrar",
    "email": "govt@ardhi-registries.com",
    "contact": "+254758173305",
    "address": "1st Ngong Avenue, Ngong Road, NAIROBI",
    "city": "NAIROBI",
    "postal_code": "00100",
}


def serialize_user(user: User) -> dict:
    return {
        "id": user.id,
        "name": user.name,
        "email": user.email,
        "contact": user.contact,
        "address": user.address,
        "city": user.city,
        "postalCode": user.postal_code,
        "walletAddress": user.wallet_address,
        "role": user.role,
        "isActive": user.is_active,
        "lastLogin": user.last_login.isoformat() if user.last_login else None,
        "createdAt": user.created_at.isoformat() if user.created_at else None,
    }


def _auth_payload(user: User) -> dict:
    return {
        "id": user.id,
        "name": user.name,
        "email": user.email,
        "walletAddress": user.wallet_address,
        "role": user.role,
    }


async def _ensure_unique(db: AsyncSession, email: str, wallet_address: str):
    result = await db.execute(
        select(User).where(or_(User.email == email, User.wallet_address == wallet_address))
    )
    existing = result.scalars().first()
    if existing:
        if existing.email == email:
            raise ConflictError("User with this email already exists")
        raise ConflictError("User with this wallet address already exists")


async def get_user(db: AsyncSession, user_id: str) -> User:
    user = await db.get(User, user_id)
    if not user:
        raise NotFoundError("User not found")
    return user


async def signup(
    db: AsyncSession,
    name: str,
    email: str,
    contact: str,
    address: str,
    city: str,
    postal_code: str,
    wallet_address: str,
    password: Optional[str] = None,
) -> dict:
    """Create a regular user and return a session token."""
    fields = [name, email, contact, address, city, postal_code, wallet_address]
    if any(not (value or "").strip() for value in fields):
        raise ValidationError("All fields are required")
    if not is_valid_email(email.strip()):
        raise ValidationError("Please enter a valid email address")
    if not is_valid_wallet(wallet_address.strip()):
        raise ValidationError("Please enter a valid Ethereum wallet address")

    email = normalize_email(email)
    wallet_address = normalize_wallet(wallet_address)
    await _ensure_unique(db, email, wallet_address)

    user = User(
        name=name.strip(),
        email=email,
        contact=contact.strip(),
        address=address.strip(),
        city=city.strip(),
        postal_code=postal_code.strip(),
        wallet_address=wallet_address,
        role=Role.USER.value,
        password_hash=crypto_engine.hash_password(password) if password else None,
        is_active=True,
    )
    db.add(user)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ConflictError("User with this email or wallet address already exists")

    logger.info(f"User {user.id} signed up ({email})")
    return {
        "message": "User registered successfully",
        "token": issue_token(user),
        "user": _auth_payload(user),
    }


async def register_government(
    db: AsyncSession,
    wallet_address: str,
    password: str,
    name: Optional[str] = None,
    email: Optional[str] = None,
    contact: Optional[str] = None,
    address: Optional[str] = None,
    city: Optional[str] = None,
    postal_code: Optional[str] = None,
) -> dict:
    """Create the single registrar account."""
    if not password:
        raise ValidationError("Password is required")
    if not is_valid_wallet((wallet_address or "").strip()):
        raise ValidationError("Please enter a valid Ethereum wallet address")

    result = await db.execute(select(User).where(User.role == Role.GOVERNMENT.value))
    if result.scalars().first():
        raise ConflictError("Government user already exists")

    email = email or REGISTRAR_DEFAULTS["email"]
    if not is_valid_email(email.strip()):
        raise ValidationError("Please enter a valid email address")
    email = normalize_email(email)
    wallet_address = normalize_wallet(wallet_address)
    await _ensure_unique(db, email, wallet_address)

    govt = User(
        name=name or REGISTRAR_DEFAULTS["name"],
        email=email,
        contact=contact or REGISTRAR_DEFAULTS["contact"],
        address=address or REGISTRAR_DEFAULTS["address"],
        city=city or REGISTRAR_DEFAULTS["city"],
        postal_code=postal_code or REGISTRAR_DEFAULTS["postal_code"],
        wallet_address=wallet_address,
        role=Role.GOVERNMENT.value,
        password_hash=crypto_engine.hash_password(password),
        is_active=True,
    )
    db.add(govt)
    await db.commit()

    logger.info(f"Government registrar {govt.id} created")
    return {"message": "Government user registered successfully"}


async def login(db: AsyncSession, email: Optional[str], password: Optional[str]) -> dict:
    if not email or not password:
        raise ValidationError("Email and password are required")

    result = await db.execute(select(User).where(User.email == normalize_email(email)))
    user = result.scalars().first()
    if not user:
        raise AuthenticationError("Invalid credentials")
    if not user.is_active:
        raise AuthenticationError("Account is deactivated")
    # Wallet-only accounts have no stored password
    if user.password_hash and not crypto_engine.verify_password(password, user.password_hash):
        logger.warning(f"Failed login for {user.email}")
        raise AuthenticationError("Invalid credentials")

    user.last_login = datetime.utcnow()
    await db.commit()

    return {
        "message": "Login successful",
        "token": issue_token(user),
        "user": _auth_payload(user),
    }


async def get_profile(db: AsyncSession, caller: Caller) -> dict:
    user = await get_user(db, caller.user_id)
    return {"user": serialize_user(user)}


async def update_profile(db: AsyncSession, caller: Caller, changes: dict) -> dict:
    """Apply the non-blank profile fields; email, wallet and role never change here."""
    user = await get_user(db, caller.user_id)

    editable = {
        "name": "name",
        "contact": "contact",
        "address": "address",
        "city": "city",
        "postalCode": "postal_code",
    }
    for key, column in editable.items():
        value = changes.get(key)
        if value and value.strip():
            setattr(user, column, value.strip())

    await db.commit()
    return {"message": "Profile updated successfully", "user": serialize_user(user)}


async def list_users(db: AsyncSession, caller: Caller) -> dict:
    require_capability(caller, Capability.LIST_USERS)
    result = await db.execute(
        select(User).where(User.role == Role.USER.value).order_by(User.created_at.desc())
    )
    return {"users": [serialize_user(u) for u in result.scalars().all()]}
