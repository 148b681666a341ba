"""
api/routes_users.py — User Account API Endpoints
==================================================
Endpoints:
    POST /api/signup              → Create a user, returns a token
    POST /api/register_govt       → Create the single government registrar
    POST /api/login               → Email + password login, returns a token
    GET  /api/profile             → Caller's profile
    PUT  /api/profile             → Update caller's profile
    GET  /api/users               → All regular users (government only)
    POST /api/send_notification   → Email / SMS someone (background)
"""

from fastapi import APIRouter, BackgroundTasks, Depends
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional

from db.session import get_db
from core.errors import ValidationError
from core.identity import Caller, get_current_caller
from core.notify import notify
from modules import users

router = APIRouter()


# ── Request schemas ───────────────────────────────────────────────────────────
class SignupRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: Optional[str] = None
    email: Optional[str] = None
    contact: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    postal_code: Optional[str] = Field(default=None, alias="postalCode")
    wallet_address: Optional[str] = Field(default=None, alias="walletAddress")
    password: Optional[str] = None


class LoginRequest(BaseModel):
    email: Optional[str] = None
    password: Optional[str] = None


class ProfileUpdateRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: Optional[str] = None
    contact: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    postal_code: Optional[str] = Field(default=None, alias="postalCode")


class NotificationRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    email: Optional[str] = None
    message: Optional[str] = None
    subject: Optional[str] = None
    phone_number: Optional[str] = Field(default=None, alias="phoneNumber")


# ── Endpoints ─────────────────────────────────────────────────────────────────
@router.post("/signup", status_code=201)
async def signup(body: SignupRequest, db: AsyncSession = Depends(get_db)):
    result = await users.signup(
        db=db,
        name=body.name,
        email=body.email,
        contact=body.contact,
        address=body.address,
        city=body.city,
        postal_code=body.postal_code,
        wallet_address=body.wallet_address,
        password=body.password,
    )
    return {"success": True, **result}


@router.post("/register_govt", status_code=201)
async def register_government(body: SignupRequest, db: AsyncSession = Depends(get_db)):
    result = await users.register_government(
        db=db,
        wallet_address=body.wallet_address,
        password=body.password,
        name=body.name,
        email=body.email,
        contact=body.contact,
        address=body.address,
        city=body.city,
        postal_code=body.postal_code,
    )
    return {"success": True, **result}


@router.post("/login")
async def login(body: LoginRequest, db: AsyncSession = Depends(get_db)):
    return {"success": True, **await users.login(db, body.email, body.password)}


@router.get("/profile")
async def get_profile(
    caller: Caller = Depends(get_current_caller),
    db: AsyncSession = Depends(get_db),
):
    return {"success": True, **await users.get_profile(db, caller)}


@router.put("/profile")
async def update_profile(
    body: ProfileUpdateRequest,
    caller: Caller = Depends(get_current_caller),
    db: AsyncSession = Depends(get_db),
):
    changes = body.model_dump(by_alias=True, exclude_none=True)
    return {"success": True, **await users.update_profile(db, caller, changes)}


@router.get("/users")
async def list_users(
    caller: Caller = Depends(get_current_caller),
    db: AsyncSession = Depends(get_db),
):
    return {"success": True, **await users.list_users(db, caller)}


@router.post("/send_notification")
async def send_notification(
    body: NotificationRequest,
    background_tasks: BackgroundTasks,
    caller: Caller = Depends(get_current_caller),
):
    """Queue an email (and optionally an SMS); delivery happens after the response."""
    if not body.email or not body.message:
        raise ValidationError("Email and message are required")
    background_tasks.add_task(
        notify,
        email=body.email,
        subject=body.subject,
        body=body.message,
        phone_number=body.phone_number,
    )
    return {"success": True, "message": "Notification sent successfully"}
