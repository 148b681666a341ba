"""
core/workflow.py — Land Status State Machine
==============================================
A land's status is the triple (government_approval, availability,
request_status). Only these composite states are reachable:

    Unreviewed       Pending  / Not Available          / Default
    Listed           Approved / Available              / Default | Rejected
    RequestPending   Approved / Requested              / Pending
    RequestApproved  Approved / Approved for Purchase  / Approved
    Rejected         Rejected / Not Available          / Default

The functions here check the current state and mutate the land in place.
They know nothing about the database or who is calling — modules/lands.py
does the lookups and permission checks first and persists afterwards.
"""

import enum
from typing import Optional

from core.errors import ConflictError
from db.models import GovernmentApproval, Availability, RequestStatus


class LandState(str, enum.Enum):
    UNREVIEWED = "Unreviewed"
    LISTED = "Listed"
    REQUEST_PENDING = "RequestPending"
    REQUEST_APPROVED = "RequestApproved"
    REJECTED = "Rejected"


_STATES = {
    (GovernmentApproval.PENDING, Availability.NOT_AVAILABLE, RequestStatus.DEFAULT): LandState.UNREVIEWED,
    (GovernmentApproval.APPROVED, Availability.AVAILABLE, RequestStatus.DEFAULT): LandState.LISTED,
    (GovernmentApproval.APPROVED, Availability.AVAILABLE, RequestStatus.REJECTED): LandState.LISTED,
    (GovernmentApproval.APPROVED, Availability.REQUESTED, RequestStatus.PENDING): LandState.REQUEST_PENDING,
    (GovernmentApproval.APPROVED, Availability.APPROVED_FOR_PURCHASE, RequestStatus.APPROVED): LandState.REQUEST_APPROVED,
    (GovernmentApproval.REJECTED, Availability.NOT_AVAILABLE, RequestStatus.DEFAULT): LandState.REJECTED,
}


def composite_state(land) -> Optional[LandState]:
    """The named state of a land, or None if its columns are inconsistent."""
    try:
        key = (
            GovernmentApproval(land.government_approval),
            Availability(land.availability),
            RequestStatus(land.request_status),
        )
    except ValueError:
        return None
    return _STATES.get(key)


def initialize(land):
    land.government_approval = GovernmentApproval.PENDING.value
    land.availability = Availability.NOT_AVAILABLE.value
    land.request_status = RequestStatus.DEFAULT.value
    land.requester_id = None
    land.requester_wallet_address = None


# ── Government review ────────────────────────────────────────────────────────
def review(land, decision: GovernmentApproval):
    """Registrar decision on a land still awaiting review."""
    if decision not in (GovernmentApproval.APPROVED, GovernmentApproval.REJECTED):
        raise ConflictError("Invalid approval status. Must be 'Approved' or 'Rejected'")
    if land.government_approval != GovernmentApproval.PENDING.value:
        raise ConflictError(f"Land has already been {land.government_approval.lower()}")

    land.government_approval = decision.value
    if decision == GovernmentApproval.APPROVED:
        land.availability = Availability.AVAILABLE.value
    else:
        land.availability = Availability.NOT_AVAILABLE.value


# ── Purchase requests ────────────────────────────────────────────────────────
def request_purchase(land, requester_id: str, requester_wallet: str):
    if land.owner_id == requester_id:
        raise ConflictError("Cannot request your own land")
    if (
        land.government_approval != GovernmentApproval.APPROVED.value
        or land.availability != Availability.AVAILABLE.value
        or not land.is_active
    ):
        raise ConflictError("Land is not available for purchase")
    if land.requester_id or land.request_status == RequestStatus.PENDING.value:
        raise ConflictError("Land already has a pending request")

    land.requester_id = requester_id
    land.requester_wallet_address = requester_wallet
    land.availability = Availability.REQUESTED.value
    land.request_status = RequestStatus.PENDING.value


def process_request(land, decision: RequestStatus):
    """Owner's answer to the pending purchase request."""
    if decision not in (RequestStatus.APPROVED, RequestStatus.REJECTED):
        raise ConflictError("Invalid status. Must be 'Approved' or 'Rejected'")
    if land.request_status != RequestStatus.PENDING.value:
        raise ConflictError("No pending request to process")

    land.request_status = decision.value
    if decision == RequestStatus.APPROVED:
        land.availability = Availability.APPROVED_FOR_PURCHASE.value
    else:
        land.availability = Availability.AVAILABLE.value
        land.requester_id = None
        land.requester_wallet_address = None
