"""
db/models.py — Database Table Definitions
==========================================
Each class = one table.
Lands reference users by id; the land's workflow status lives in three
string-enum columns (approval, availability, request status).
"""

import enum
import uuid
from datetime import datetime
from typing import Optional
from sqlalchemy import String, DateTime, Boolean, Text, Integer, Float, ForeignKey, JSON
from sqlalchemy.orm import Mapped, mapped_column, relationship
from db.session import Base


def new_uuid():
    return str(uuid.uuid4())


# ── Enumerations ──────────────────────────────────────────────────────────────
class Role(str, enum.Enum):
    USER = "user"
    GOVERNMENT = "government"


class GovernmentApproval(str, enum.Enum):
    PENDING = "Pending"
    APPROVED = "Approved"
    REJECTED = "Rejected"


class Availability(str, enum.Enum):
    NOT_AVAILABLE = "Not Available"
    AVAILABLE = "Available"
    REQUESTED = "Requested"
    APPROVED_FOR_PURCHASE = "Approved for Purchase"


class RequestStatus(str, enum.Enum):
    DEFAULT = "Default"
    PENDING = "Pending"
    REJECTED = "Rejected"
    APPROVED = "Approved"


# ── 1. Users ──────────────────────────────────────────────────────────────────
class User(Base):
    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_uuid)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)         # always lowercase
    contact: Mapped[str] = mapped_column(String(50), nullable=False)
    address: Mapped[str] = mapped_column(String(255), nullable=False)
    city: Mapped[str] = mapped_column(String(100), nullable=False)
    postal_code: Mapped[str] = mapped_column(String(20), nullable=False)
    role: Mapped[str] = mapped_column(String(20), default=Role.USER.value, nullable=False)
    wallet_address: Mapped[str] = mapped_column(String(42), unique=True, nullable=False)  # always lowercase
    password_hash: Mapped[Optional[str]] = mapped_column(String(512), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    last_login: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    lands: Mapped[list["Land"]] = relationship(back_populates="owner", foreign_keys="Land.owner_id")


# ── 2. Lands ──────────────────────────────────────────────────────────────────
class Land(Base):
    __tablename__ = "lands"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_uuid)
    land_id: Mapped[int] = mapped_column(Integer, unique=True, index=True, nullable=False)
    owner_id: Mapped[str] = mapped_column(ForeignKey("users.id"), index=True, nullable=False)
    owner_wallet_address: Mapped[str] = mapped_column(String(42), index=True, nullable=False)
    ipfs_hash: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    land_address: Mapped[str] = mapped_column(String(200), unique=True, nullable=False)
    price: Mapped[float] = mapped_column(Float, nullable=False)
    description: Mapped[str] = mapped_column(Text, default="")
    land_details: Mapped[dict] = mapped_column(JSON, default=dict)   # area, state, city, postalCode, documents, images
    government_approval: Mapped[str] = mapped_column(
        String(20), default=GovernmentApproval.PENDING.value, index=True
    )
    availability: Mapped[str] = mapped_column(
        String(30), default=Availability.NOT_AVAILABLE.value, index=True
    )
    requester_id: Mapped[Optional[str]] = mapped_column(ForeignKey("users.id"), index=True, nullable=True)
    requester_wallet_address: Mapped[Optional[str]] = mapped_column(String(42), nullable=True)
    request_status: Mapped[str] = mapped_column(String(20), default=RequestStatus.DEFAULT.value)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    block_hash: Mapped[Optional[str]] = mapped_column(String(512), nullable=True)   # last ledger event
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    owner: Mapped["User"] = relationship(back_populates="lands", foreign_keys=[owner_id], lazy="selectin")
    requester: Mapped[Optional["User"]] = relationship(foreign_keys=[requester_id], lazy="selectin")


# ── 3. Counters ───────────────────────────────────────────────────────────────
class Counter(Base):
    """Named monotonically increasing sequences (e.g. "land_id")."""
    __tablename__ = "counters"

    name: Mapped[str] = mapped_column(String(50), primary_key=True)
    value: Mapped[int] = mapped_column(Integer, nullable=False, default=0)


# ── 4. Audit Log ──────────────────────────────────────────────────────────────
class AuditLog(Base):
    __tablename__ = "audit_logs"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_uuid)
    land_id: Mapped[int] = mapped_column(Integer, index=True, nullable=False)
    actor_id: Mapped[str] = mapped_column(String(36))
    actor_role: Mapped[str] = mapped_column(String(20))
    action: Mapped[str] = mapped_column(String(50))        # REGISTER | APPROVE | REJECT | REQUEST | ...
    details: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    block_hash: Mapped[Optional[str]] = mapped_column(String(512), nullable=True)
    timestamp: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
