"""
api/routes_lands.py — Land Registry API Endpoints
===================================================
Endpoints:
    POST /api/register                  → Register a land parcel
    GET  /api/available                 → Public listing (filters + paging)
    GET  /api/pending-approval          → Lands awaiting review (government)
    GET  /api/stats/overview            → Aggregate counts
    GET  /api/user/{user_id}            → A user's lands (owner or government)
    POST /api/request/{land_id}         → Ask to buy a listed land
    POST /api/process-request/{land_id} → Owner approves / rejects the request
    POST /api/approve/{land_id}         → Registrar approves / rejects the land
    GET  /api/{land_id}/history         → Audit trail (owner or government)
    GET  /api/{land_id}                 → Land details
    PUT  /api/{land_id}                 → Owner edits price / description

Static paths are declared before /{land_id} so they are matched first.
"""

from fastapi import APIRouter, BackgroundTasks, Depends, Query
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional, Union

from config import settings
from db.session import get_db
from core.identity import Caller, get_current_caller
from core.notify import notify
from modules import lands

router = APIRouter()


# ── Request schemas ───────────────────────────────────────────────────────────
class LandDetails(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    area: Optional[Union[str, float]] = None
    state: Optional[str] = None
    city: Optional[str] = None
    postal_code: Optional[str] = Field(default=None, alias="postalCode")
    documents: list[str] = []      # content hashes, object keys or data URIs
    images: list[str] = []


class RegisterLandRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    land_address: Optional[str] = Field(default=None, alias="landAddress")
    price: Optional[float] = None
    area: Optional[Union[str, float]] = None
    description: Optional[str] = None
    ipfs_hash: Optional[str] = Field(default=None, alias="ipfsHash")
    land_details: Optional[LandDetails] = Field(default=None, alias="landDetails")


class ReviewRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    approval_status: Optional[str] = Field(default=None, alias="approvalStatus")   # Approved | Rejected


class ProcessRequest(BaseModel):
    status: Optional[str] = None     # Approved | Rejected


class UpdateLandRequest(BaseModel):
    price: Optional[float] = None
    description: Optional[str] = None


def _schedule(background_tasks: BackgroundTasks, result: dict) -> dict:
    """Move the notification a module prepared into a background task."""
    note = result.pop("notify", None)
    if note and note.get("email"):
        background_tasks.add_task(notify, email=note["email"], subject=note["subject"], body=note["body"])
    return result


# ── Endpoints ─────────────────────────────────────────────────────────────────
@router.post("/register", status_code=201)
async def register_land(
    body: RegisterLandRequest,
    caller: Caller = Depends(get_current_caller),
    db: AsyncSession = Depends(get_db),
):
    details = body.land_details.model_dump(by_alias=True) if body.land_details else None
    result = await lands.register_land(
        db=db,
        caller=caller,
        land_address=body.land_address,
        price=body.price,
        area=body.area,
        description=body.description,
        ipfs_hash=body.ipfs_hash,
        land_details=details,
    )
    return {"success": True, **result}


@router.get("/available")
async def list_available(
    page: int = Query(1, ge=1),
    limit: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    min_price: Optional[float] = Query(None, alias="minPrice", ge=0),
    max_price: Optional[float] = Query(None, alias="maxPrice", ge=0),
    state: Optional[str] = None,
    city: Optional[str] = None,
    db: AsyncSession = Depends(get_db),
):
    result = await lands.list_available(
        db, page=page, limit=limit, min_price=min_price, max_price=max_price, state=state, city=city,
    )
    return {"success": True, **result}


@router.get("/pending-approval")
async def list_pending_approval(
    caller: Caller = Depends(get_current_caller),
    db: AsyncSession = Depends(get_db),
):
    return {"success": True, **await lands.list_pending_approval(db, caller)}


@router.get("/stats/overview")
async def stats_overview(
    caller: Caller = Depends(get_current_caller),
    db: AsyncSession = Depends(get_db),
):
    return {"success": True, **await lands.land_stats(db)}


@router.get("/user/{user_id}")
async def list_user_lands(
    user_id: str,
    caller: Caller = Depends(get_current_caller),
    db: AsyncSession = Depends(get_db),
):
    return {"success": True, **await lands.list_user_lands(db, caller, user_id)}


@router.post("/request/{land_id}")
async def request_land(
    land_id: int,
    background_tasks: BackgroundTasks,
    caller: Caller = Depends(get_current_caller),
    db: AsyncSession = Depends(get_db),
):
    result = await lands.request_land(db, caller, land_id)
    return {"success": True, **_schedule(background_tasks, result)}


@router.post("/process-request/{land_id}")
async def process_request(
    land_id: int,
    body: ProcessRequest,
    background_tasks: BackgroundTasks,
    caller: Caller = Depends(get_current_caller),
    db: AsyncSession = Depends(get_db),
):
    result = await lands.process_land_request(db, caller, land_id, body.status)
    return {"success": True, **_schedule(background_tasks, result)}


@router.post("/approve/{land_id}")
async def review_land(
    land_id: int,
    body: ReviewRequest,
    background_tasks: BackgroundTasks,
    caller: Caller = Depends(get_current_caller),
    db: AsyncSession = Depends(get_db),
):
    result = await lands.review_land(db, caller, land_id, body.approval_status)
    return {"success": True, **_schedule(background_tasks, result)}


@router.get("/{land_id}/history")
async def land_history(
    land_id: int,
    limit: int = Query(50, ge=1, le=500),
    caller: Caller = Depends(get_current_caller),
    db: AsyncSession = Depends(get_db),
):
    return {"success": True, **await lands.land_history(db, caller, land_id, limit)}


@router.get("/{land_id}")
async def get_land(land_id: int, db: AsyncSession = Depends(get_db)):
    return {"success": True, **await lands.get_land_details(db, land_id)}


@router.put("/{land_id}")
async def update_land(
    land_id: int,
    body: UpdateLandRequest,
    caller: Caller = Depends(get_current_caller),
    db: AsyncSession = Depends(get_db),
):
    result = await lands.update_land(
        db, caller, land_id, price=body.price, description=body.description,
    )
    return {"success": True, **result}
