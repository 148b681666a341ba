"""
core/permissions.py — Roles & Capabilities
============================================
The security gate. Called by every land and user operation before any data
is changed. A caller is either a RegularUser or a GovernmentOfficial; what
each may do is listed once here instead of comparing role strings in
handlers.

Roles:
    user        — registers and trades their own land
    government  — the registrar: reviews registrations, sees all users
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Union

from core.errors import AuthorizationError
from core.identity import Caller
from db.models import Role

logger = logging.getLogger("ardhi.permissions")


class Capability(str, Enum):
    REGISTER_LAND = "register_land"
    REQUEST_PURCHASE = "request_purchase"
    REVIEW_LAND = "review_land"              # approve / reject registrations
    VIEW_PENDING = "view_pending"
    VIEW_ANY_PORTFOLIO = "view_any_portfolio"
    LIST_USERS = "list_users"


@dataclass(frozen=True)
class RegularUser:
    caller: Caller
    capabilities = frozenset({Capability.REGISTER_LAND, Capability.REQUEST_PURCHASE})


@dataclass(frozen=True)
class GovernmentOfficial:
    caller: Caller
    capabilities = frozenset({
        Capability.REVIEW_LAND,
        Capability.VIEW_PENDING,
        Capability.VIEW_ANY_PORTFOLIO,
        Capability.LIST_USERS,
        Capability.REGISTER_LAND,
        Capability.REQUEST_PURCHASE,
    })


Principal = Union[RegularUser, GovernmentOfficial]


def principal_for(caller: Caller) -> Principal:
    """Map token claims onto the role variant."""
    if caller.role == Role.GOVERNMENT.value:
        return GovernmentOfficial(caller)
    return RegularUser(caller)


def can(caller: Caller, capability: Capability) -> bool:
    return capability in principal_for(caller).capabilities


def require_capability(caller: Caller, capability: Capability, message: str = None):
    """
    Raises 403 unless the caller's role grants the capability.

        require_capability(caller, Capability.REVIEW_LAND)
        # execution continues only if permitted
    """
    if not can(caller, capability):
        logger.warning(f"DENIED {capability.value} for {caller.role} {caller.user_id}")
        raise AuthorizationError(message or "Access denied. Government role required.")


def require_owner(caller: Caller, owner_id: str, message: str = "Access denied"):
    if caller.user_id != owner_id:
        logger.warning(f"DENIED non-owner {caller.user_id} on resource of {owner_id}")
        raise AuthorizationError(message)


def require_owner_or_capability(caller: Caller, owner_id: str, capability: Capability):
    """Owner access, or a role that may look at anyone's records."""
    if caller.user_id == owner_id or can(caller, capability):
        return
    logger.warning(f"DENIED {caller.user_id} access to records of {owner_id}")
    raise AuthorizationError("Access denied")
