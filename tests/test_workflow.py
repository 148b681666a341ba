from types import SimpleNamespace

import pytest

from core import workflow
from core.errors import ConflictError
from core.workflow import LandState
from db.models import GovernmentApproval, Availability, RequestStatus

OWNER = "owner-1"
BUYER = "buyer-1"
BUYER_WALLET = "0x" + "b" * 40


def new_land():
    land = SimpleNamespace(owner_id=OWNER, is_active=True)
    workflow.initialize(land)
    return land


def listed_land():
    land = new_land()
    workflow.review(land, GovernmentApproval.APPROVED)
    return land


def requested_land():
    land = listed_land()
    workflow.request_purchase(land, BUYER, BUYER_WALLET)
    return land


def test_new_land_is_unreviewed():
    assert workflow.composite_state(new_land()) == LandState.UNREVIEWED


def test_approval_lists_the_land():
    land = listed_land()
    assert land.government_approval == "Approved"
    assert land.availability == "Available"
    assert workflow.composite_state(land) == LandState.LISTED


def test_rejection_forces_not_available():
    land = new_land()
    workflow.review(land, GovernmentApproval.REJECTED)
    assert land.government_approval == "Rejected"
    assert land.availability == "Not Available"
    assert workflow.composite_state(land) == LandState.REJECTED


@pytest.mark.parametrize("decision", [GovernmentApproval.APPROVED, GovernmentApproval.REJECTED])
def test_review_only_once(decision):
    land = listed_land()
    with pytest.raises(ConflictError):
        workflow.review(land, decision)


def test_review_rejects_pending_as_a_decision():
    with pytest.raises(ConflictError):
        workflow.review(new_land(), GovernmentApproval.PENDING)


def test_request_moves_to_request_pending():
    land = requested_land()
    assert land.requester_id == BUYER
    assert land.requester_wallet_address == BUYER_WALLET
    assert land.availability == "Requested"
    assert land.request_status == "Pending"
    assert workflow.composite_state(land) == LandState.REQUEST_PENDING


def test_owner_cannot_request_own_land():
    land = listed_land()
    with pytest.raises(ConflictError, match="own land"):
        workflow.request_purchase(land, OWNER, BUYER_WALLET)
    assert workflow.composite_state(land) == LandState.LISTED


def test_unreviewed_land_cannot_be_requested():
    with pytest.raises(ConflictError, match="not available"):
        workflow.request_purchase(new_land(), BUYER, BUYER_WALLET)


def test_inactive_land_cannot_be_requested():
    land = listed_land()
    land.is_active = False
    with pytest.raises(ConflictError):
        workflow.request_purchase(land, BUYER, BUYER_WALLET)


def test_second_request_is_refused():
    land = requested_land()
    with pytest.raises(ConflictError):
        workflow.request_purchase(land, "buyer-2", "0x" + "c" * 40)
    assert land.requester_id == BUYER


def test_owner_approves_request():
    land = requested_land()
    workflow.process_request(land, RequestStatus.APPROVED)
    assert land.availability == "Approved for Purchase"
    assert land.request_status == "Approved"
    assert land.requester_id == BUYER
    assert workflow.composite_state(land) == LandState.REQUEST_APPROVED


def test_owner_rejects_request_and_land_is_relisted():
    land = requested_land()
    workflow.process_request(land, RequestStatus.REJECTED)
    assert land.availability == "Available"
    assert land.request_status == "Rejected"
    assert land.requester_id is None
    assert land.requester_wallet_address is None
    assert workflow.composite_state(land) == LandState.LISTED

    # open for a new request again
    workflow.request_purchase(land, "buyer-2", "0x" + "c" * 40)
    assert land.request_status == "Pending"


def test_processing_without_pending_request():
    with pytest.raises(ConflictError, match="No pending request"):
        workflow.process_request(listed_land(), RequestStatus.APPROVED)


def test_processing_twice_is_refused():
    land = requested_land()
    workflow.process_request(land, RequestStatus.APPROVED)
    with pytest.raises(ConflictError):
        workflow.process_request(land, RequestStatus.REJECTED)


@pytest.mark.parametrize("decision", [RequestStatus.PENDING, RequestStatus.DEFAULT])
def test_process_request_rejects_non_decisions(decision):
    with pytest.raises(ConflictError):
        workflow.process_request(requested_land(), decision)


def test_inconsistent_columns_have_no_state():
    land = new_land()
    land.availability = Availability.REQUESTED.value
    assert workflow.composite_state(land) is None
    land.availability = "Sold"
    assert workflow.composite_state(land) is None
