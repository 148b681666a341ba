"""
modules/lands.py — Land Registry Module
=========================================
Business logic for registering land, the registrar's review, purchase
requests between users, and the public listings.

Flow for every change:
    API route → load land (404) → check caller (403) → state transition (400)
              → write ledger block + audit row → commit → return

Status transitions themselves live in core/workflow.py.
"""

import logging
import math
from typing import Optional

from sqlalchemy import select, update, func, case
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from config import settings
from core import workflow
from core.blockchain import blockchain
from core.crypto import crypto_engine
from core.errors import ConflictError, InternalError, NotFoundError, ValidationError
from core.identity import Caller
from core.permissions import (
    Capability, require_capability, require_owner, require_owner_or_capability,
)
from db.models import (
    Land, User, Counter, AuditLog, GovernmentApproval, Availability, RequestStatus,
)
from modules.users import get_user

logger = logging.getLogger("ardhi.modules.lands")

LAND_ID_COUNTER = "land_id"
MAX_ADDRESS_LENGTH = 200


# ── Serialisation ─────────────────────────────────────────────────────────────
def _person(user: Optional[User]) -> Optional[dict]:
    if user is None:
        return None
    return {
        "id": user.id,
        "name": user.name,
        "email": user.email,
        "walletAddress": user.wallet_address,
        "contact": user.contact,
    }


def serialize_land(land: Land) -> dict:
    return {
        "landId": land.land_id,
        "ownerWalletAddress": land.owner_wallet_address,
        "ipfsHash": land.ipfs_hash,
        "landAddress": land.land_address,
        "price": land.price,
        "description": land.description,
        "landDetails": land.land_details or {},
        "governmentApproval": land.government_approval,
        "availability": land.availability,
        "requesterWalletAddress": land.requester_wallet_address,
        "requestStatus": land.request_status,
        "isActive": land.is_active,
        "blockHash": land.block_hash,
        "createdAt": land.created_at.isoformat() if land.created_at else None,
        "updatedAt": land.updated_at.isoformat() if land.updated_at else None,
        "owner": _person(land.owner),
        "requester": _person(land.requester),
    }


def _summary(land: Land) -> dict:
    return {
        "landId": land.land_id,
        "landAddress": land.land_address,
        "price": land.price,
        "governmentApproval": land.government_approval,
        "availability": land.availability,
        "requestStatus": land.request_status,
    }


# ── Helpers ───────────────────────────────────────────────────────────────────
async def _get_land(db: AsyncSession, land_id: int) -> Land:
    result = await db.execute(select(Land).where(Land.land_id == land_id))
    land = result.scalars().first()
    if not land:
        raise NotFoundError("Land not found")
    return land


async def _bump_land_counter(db: AsyncSession) -> Optional[int]:
    result = await db.execute(
        update(Counter)
        .where(Counter.name == LAND_ID_COUNTER)
        .values(value=Counter.value + 1)
        .returning(Counter.value)
    )
    return result.scalar_one_or_none()


async def _seed_land_counter(db: AsyncSession) -> Optional[int]:
    """
    Create the counter row at max(land_id) + 1. Returns None when another
    transaction created it first.
    """
    highest = (await db.execute(select(func.max(Land.land_id)))).scalar() or 0
    try:
        async with db.begin_nested():
            db.add(Counter(name=LAND_ID_COUNTER, value=highest + 1))
    except IntegrityError:
        logger.info("Land id counter was seeded concurrently, retrying increment")
        return None
    return highest + 1


async def _next_land_id(db: AsyncSession) -> int:
    """
    Allocate the next land id with a single increment-and-read statement.
    The counter row is seeded from the highest existing id the first time.
    """
    value = await _bump_land_counter(db)
    if value is None:
        value = await _seed_land_counter(db)
    if value is None:
        value = await _bump_land_counter(db)
    return value


async def _record_event(db: AsyncSession, land: Land, caller: Caller, action: str, details: str):
    """Anchor the event on the ledger and append it to the audit trail."""
    try:
        block = await blockchain.record(f"LAND_{action}", {
            "event": f"LAND_{action}",
            "land_id": land.land_id,
            "actor_id": caller.user_id,
            "government_approval": land.government_approval,
            "availability": land.availability,
            "request_status": land.request_status,
            "owner_wallet_address": land.owner_wallet_address,
            "requester_wallet_address": land.requester_wallet_address,
        })
    except Exception as e:
        logger.error(f"Ledger write failed for land #{land.land_id} [{action}]: {e}")
        raise InternalError("Failed to record the transaction on the ledger")
    land.block_hash = block["hash"]
    db.add(AuditLog(
        land_id=land.land_id,
        actor_id=caller.user_id,
        actor_role=caller.role,
        action=action,
        details=details,
        block_hash=block["hash"],
    ))


def _parse_area(area) -> str:
    area = "" if area is None else str(area).strip()
    if not area:
        raise ValidationError("Land area is required")
    try:
        numeric = float(area)
    except ValueError:
        return area     # free-form, e.g. "2 acres"
    if numeric <= 0:
        raise ValidationError("Area must be greater than 0")
    return area


def _check_attachment(ref: str):
    """
    Attachments are either opaque references (content hash, object key) or
    inline data URIs; the latter must be an allowed type within MAX_FILE_SIZE.
    """
    if not isinstance(ref, str) or not ref.strip():
        raise ValidationError("Document and image references must be non-empty strings")
    if not ref.startswith("data:"):
        return
    header, _, payload = ref.partition(",")
    mime = header[len("data:"):].split(";")[0]
    if mime not in settings.ALLOWED_FILE_TYPES:
        raise ValidationError(f"File type '{mime}' is not allowed")
    size = len(payload) * 3 // 4 - payload.count("=")
    if size > settings.MAX_FILE_SIZE:
        raise ValidationError(f"File exceeds the {settings.MAX_FILE_SIZE} byte limit")


def _build_details(area: str, land_details: Optional[dict]) -> dict:
    land_details = dict(land_details or {})
    documents = list(land_details.get("documents") or [])
    images = list(land_details.get("images") or [])
    for ref in documents + images:
        _check_attachment(ref)
    return {
        "area": area,
        "state": (land_details.get("state") or "").strip(),
        "city": (land_details.get("city") or "").strip(),
        "postalCode": (land_details.get("postalCode") or "").strip(),
        "documents": documents,
        "images": images,
    }


# ── Registration ──────────────────────────────────────────────────────────────
async def register_land(
    db: AsyncSession,
    caller: Caller,
    land_address: Optional[str],
    price: Optional[float],
    area=None,
    description: Optional[str] = None,
    ipfs_hash: Optional[str] = None,
    land_details: Optional[dict] = None,
) -> dict:
    """Register a new parcel for the caller. It starts Unreviewed."""
    require_capability(caller, Capability.REGISTER_LAND, "Access denied")
    owner = await get_user(db, caller.user_id)

    land_address = (land_address or "").strip()
    description = (description or "").strip()
    if not land_address or price is None or not description:
        raise ValidationError("Land address, price, description and area are required")
    if len(land_address) > MAX_ADDRESS_LENGTH:
        raise ValidationError(f"Land address cannot exceed {MAX_ADDRESS_LENGTH} characters")
    if price <= 0:
        raise ValidationError("Price must be greater than 0")
    if area is None and land_details:
        area = land_details.get("area")
    details = _build_details(_parse_area(area), land_details)

    existing = await db.execute(select(Land.id).where(Land.land_address == land_address))
    if existing.first():
        raise ConflictError("Land with this address already exists")

    ipfs_hash = (ipfs_hash or "").strip() or crypto_engine.hash_payload({
        "landAddress": land_address,
        "owner": owner.id,
        "documents": details["documents"],
        "images": details["images"],
    })
    existing = await db.execute(select(Land.id).where(Land.ipfs_hash == ipfs_hash))
    if existing.first():
        raise ConflictError("Land with this document hash already exists")

    land = Land(
        land_id=await _next_land_id(db),
        owner_id=owner.id,
        owner_wallet_address=owner.wallet_address,
        ipfs_hash=ipfs_hash,
        land_address=land_address,
        price=float(price),
        description=description,
        land_details=details,
        is_active=True,
    )
    workflow.initialize(land)
    db.add(land)
    await _record_event(db, land, caller, "REGISTER", f"Registered {land_address}")

    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ConflictError("Land with this address already exists")

    logger.info(f"Land #{land.land_id} registered by {owner.id}")
    return {"message": "Land registered successfully", "land": _summary(land)}


# ── Government review ─────────────────────────────────────────────────────────
async def review_land(db: AsyncSession, caller: Caller, land_id: int, approval_status: str) -> dict:
    land = await _get_land(db, land_id)
    require_capability(caller, Capability.REVIEW_LAND)

    try:
        decision = GovernmentApproval(approval_status)
    except ValueError:
        raise ValidationError("Invalid approval status. Must be 'Approved' or 'Rejected'")
    workflow.review(land, decision)
    action = "APPROVE" if approval_status == GovernmentApproval.APPROVED.value else "REJECT"
    await _record_event(db, land, caller, action, f"Registrar marked land {approval_status}")
    await db.commit()

    logger.info(f"Land #{land.land_id} {approval_status.lower()} by registrar {caller.user_id}")
    return {
        "message": f"Land {approval_status.lower()} successfully",
        "land": _summary(land),
        "notify": {
            "email": land.owner.email if land.owner else None,
            "subject": f"Land #{land.land_id} {approval_status.lower()}",
            "body": f"Your land at {land.land_address} was {approval_status.lower()} by the registrar.",
        },
    }


# ── Purchase requests ─────────────────────────────────────────────────────────
async def request_land(db: AsyncSession, caller: Caller, land_id: int) -> dict:
    land = await _get_land(db, land_id)
    require_capability(caller, Capability.REQUEST_PURCHASE, "Access denied")
    requester = await get_user(db, caller.user_id)

    workflow.request_purchase(land, requester.id, requester.wallet_address)
    await _record_event(db, land, caller, "REQUEST", f"Purchase requested by {requester.id}")
    await db.commit()

    logger.info(f"Land #{land.land_id} requested by {requester.id}")
    return {
        "message": "Land purchase request submitted successfully",
        "land": _summary(land),
        "notify": {
            "email": land.owner.email if land.owner else None,
            "subject": f"Purchase request for land #{land.land_id}",
            "body": f"{requester.name} ({requester.wallet_address}) requested to buy {land.land_address}.",
        },
    }


async def process_land_request(db: AsyncSession, caller: Caller, land_id: int, status: str) -> dict:
    land = await _get_land(db, land_id)
    require_owner(caller, land.owner_id, "Only land owner can process requests")

    try:
        decision = RequestStatus(status)
    except ValueError:
        raise ValidationError("Invalid status. Must be 'Approved' or 'Rejected'")

    requester = land.requester
    workflow.process_request(land, decision)
    action = "REQUEST_APPROVED" if status == RequestStatus.APPROVED.value else "REQUEST_REJECTED"
    await _record_event(db, land, caller, action, f"Owner {status.lower()} the purchase request")
    await db.commit()

    logger.info(f"Land #{land.land_id} request {status.lower()} by owner {caller.user_id}")
    return {
        "message": f"Land request {status.lower()} successfully",
        "land": _summary(land),
        "notify": {
            "email": requester.email if requester else None,
            "subject": f"Your request for land #{land.land_id}",
            "body": f"The owner of {land.land_address} {status.lower()} your purchase request.",
        },
    }


# ── Owner edits ───────────────────────────────────────────────────────────────
async def update_land(
    db: AsyncSession,
    caller: Caller,
    land_id: int,
    price: Optional[float] = None,
    description: Optional[str] = None,
) -> dict:
    land = await _get_land(db, land_id)
    require_owner(caller, land.owner_id, "Only land owner can update details")

    if price is not None and price <= 0:
        raise ValidationError("Price must be greater than 0")
    if description is not None and not description.strip():
        raise ValidationError("Description cannot be empty")

    changes = []
    if price is not None:
        land.price = float(price)
        changes.append(f"price={land.price}")
    if description is not None:
        land.description = description.strip()
        changes.append("description")

    if changes:
        await _record_event(db, land, caller, "UPDATE", "Updated " + ", ".join(changes))
    await db.commit()

    return {
        "message": "Land details updated successfully",
        "land": {"landId": land.land_id, "price": land.price, "description": land.description},
    }


# ── Queries ───────────────────────────────────────────────────────────────────
def available_filter():
    """The public listing rule: approved, open for requests, active."""
    return (
        Land.government_approval == GovernmentApproval.APPROVED.value,
        Land.availability == Availability.AVAILABLE.value,
        Land.is_active == True,  # noqa: E712
    )


async def list_available(
    db: AsyncSession,
    page: int = 1,
    limit: int = None,
    min_price: Optional[float] = None,
    max_price: Optional[float] = None,
    state: Optional[str] = None,
    city: Optional[str] = None,
) -> dict:
    limit = limit or settings.DEFAULT_PAGE_SIZE
    conditions = list(available_filter())
    if min_price is not None:
        conditions.append(Land.price >= min_price)
    if max_price is not None:
        conditions.append(Land.price <= max_price)
    if state:
        conditions.append(Land.land_details["state"].as_string().icontains(state, autoescape=True))
    if city:
        conditions.append(Land.land_details["city"].as_string().icontains(city, autoescape=True))

    total = (await db.execute(select(func.count(Land.id)).where(*conditions))).scalar() or 0
    result = await db.execute(
        select(Land)
        .where(*conditions)
        .order_by(Land.created_at.desc(), Land.land_id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    )
    lands = result.scalars().all()

    return {
        "lands": [serialize_land(land) for land in lands],
        "pagination": {
            "current": page,
            "pages": math.ceil(total / limit),
            "total": total,
        },
    }


async def list_user_lands(db: AsyncSession, caller: Caller, user_id: str) -> dict:
    require_owner_or_capability(caller, user_id, Capability.VIEW_ANY_PORTFOLIO)
    result = await db.execute(
        select(Land)
        .where(Land.owner_id == user_id)
        .order_by(Land.created_at.desc(), Land.land_id.desc())
    )
    return {"lands": [serialize_land(land) for land in result.scalars().all()]}


async def list_pending_approval(db: AsyncSession, caller: Caller) -> dict:
    require_capability(caller, Capability.VIEW_PENDING)
    result = await db.execute(
        select(Land)
        .where(
            Land.government_approval == GovernmentApproval.PENDING.value,
            Land.is_active == True,  # noqa: E712
        )
        .order_by(Land.created_at.desc(), Land.land_id.desc())
    )
    return {"lands": [serialize_land(land) for land in result.scalars().all()]}


async def get_land_details(db: AsyncSession, land_id: int) -> dict:
    land = await _get_land(db, land_id)
    data = serialize_land(land)
    state = workflow.composite_state(land)
    data["state"] = state.value if state else None
    return {"land": data}


async def land_history(db: AsyncSession, caller: Caller, land_id: int, limit: int = 50) -> dict:
    land = await _get_land(db, land_id)
    require_owner_or_capability(caller, land.owner_id, Capability.VIEW_ANY_PORTFOLIO)
    result = await db.execute(
        select(AuditLog)
        .where(AuditLog.land_id == land.land_id)
        .order_by(AuditLog.timestamp.desc())
        .limit(limit)
    )
    return {
        "history": [
            {
                "action": log.action,
                "actorId": log.actor_id,
                "actorRole": log.actor_role,
                "details": log.details,
                "blockHash": log.block_hash,
                "timestamp": log.timestamp.isoformat(),
            }
            for log in result.scalars().all()
        ]
    }


async def land_stats(db: AsyncSession) -> dict:
    """Totals and status counts in a single aggregate query."""
    def _count_where(condition):
        return func.coalesce(func.sum(case((condition, 1), else_=0)), 0)

    row = (await db.execute(
        select(
            func.count(Land.id),
            func.coalesce(func.sum(Land.price), 0),
            _count_where(Land.government_approval == GovernmentApproval.APPROVED.value),
            _count_where(Land.government_approval == GovernmentApproval.PENDING.value),
            _count_where(Land.government_approval == GovernmentApproval.REJECTED.value),
            _count_where(Land.availability == Availability.AVAILABLE.value),
            _count_where(Land.availability == Availability.REQUESTED.value),
        )
    )).one()

    return {
        "stats": {
            "totalLands": int(row[0]),
            "totalValue": float(row[1]),
            "approvedLands": int(row[2]),
            "pendingLands": int(row[3]),
            "rejectedLands": int(row[4]),
            "availableLands": int(row[5]),
            "requestedLands": int(row[6]),
        }
    }
