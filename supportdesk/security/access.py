"""
Access Guard - who may read and write a ticket's conversation

Roles map to a closed set of capabilities. Every UserRole must appear in
ROLE_CAPABILITIES; the module refuses to import otherwise, so adding a role
forces a decision about what it may do.
"""
from enum import Enum
from typing import Any, Dict, FrozenSet, Mapping

from supportdesk.models import Actor, UserRole


class Capability(str, Enum):
    """Things a role may do regardless of ticket ownership"""
    ACCESS_ANY_TICKET = "access_any_ticket"
    DELETE_MESSAGES = "delete_messages"
    CHANGE_TICKET_STATUS = "change_ticket_status"


ROLE_CAPABILITIES: Dict[UserRole, FrozenSet[Capability]] = {
    UserRole.ADMIN: frozenset(Capability),
    UserRole.AGENT: frozenset(Capability),
    UserRole.CUSTOMER: frozenset(),
}

_missing_roles = set(UserRole) - set(ROLE_CAPABILITIES)
if _missing_roles:
    raise RuntimeError(f"Roles without a capability set: {sorted(r.value for r in _missing_roles)}")


def has_capability(actor: Actor, capability: Capability) -> bool:
    return capability in ROLE_CAPABILITIES[actor.role]


def is_staff(actor: Actor) -> bool:
    """Admins and agents"""
    return has_capability(actor, Capability.ACCESS_ANY_TICKET)


def is_ticket_owner(actor: Actor, ticket: Mapping[str, Any]) -> bool:
    owner = ticket.get("customer")
    return owner is not None and str(owner) == actor.id


def can_access(actor: Actor, ticket: Mapping[str, Any]) -> bool:
    """
    Decide whether actor may read/write the ticket's messages.

    Staff may access any ticket; a customer only the tickets they own.
    Never raises; callers turn False into a ForbiddenError.

    Args:
        actor: Authenticated caller
        ticket: Ticket document (only "customer" is read)

    Returns:
        True if access is allowed
    """
    return is_staff(actor) or is_ticket_owner(actor, ticket)
