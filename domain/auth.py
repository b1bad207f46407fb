"""Domain Entities - Auth

The engine never authenticates anyone. It receives an already-authenticated
actor carrying a role tag and checks that role against the action table.
"""
from typing import Dict, FrozenSet, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field

from domain.enums import ActorRole, BookingAction
from domain.exceptions import ForbiddenError

_STAFF = frozenset({
    ActorRole.SUPER_ADMIN,
    ActorRole.PROPERTY_OWNER,
    ActorRole.PROPERTY_MANAGER,
    ActorRole.FRONT_DESK,
})

ACTION_ROLES: Dict[BookingAction, FrozenSet[ActorRole]] = {
    BookingAction.CREATE: frozenset(ActorRole),
    BookingAction.SUBMIT_PAYMENT: frozenset(ActorRole),
    BookingAction.REVIEW: _STAFF,
    BookingAction.VERIFY: _STAFF,
    BookingAction.CONFIRM: _STAFF,
    BookingAction.CHECK_IN: _STAFF,
    BookingAction.CHECK_OUT: _STAFF | {ActorRole.HOUSEKEEPING},
    BookingAction.COMPLETE: _STAFF | {ActorRole.HOUSEKEEPING},
    BookingAction.CANCEL: frozenset({
        ActorRole.SUPER_ADMIN,
        ActorRole.PROPERTY_OWNER,
        ActorRole.PROPERTY_MANAGER,
    }),
    BookingAction.NO_SHOW: frozenset({
        ActorRole.SUPER_ADMIN,
        ActorRole.PROPERTY_MANAGER,
        ActorRole.FRONT_DESK,
    }),
    BookingAction.RECORD_PAYMENT: frozenset({
        ActorRole.SUPER_ADMIN,
        ActorRole.PROPERTY_MANAGER,
        ActorRole.FRONT_DESK,
        ActorRole.FINANCE,
    }),
    BookingAction.DELETE: frozenset({ActorRole.SUPER_ADMIN}),
}

# Rate profile and seasonal rate maintenance
RATE_MANAGER_ROLES = frozenset({
    ActorRole.SUPER_ADMIN,
    ActorRole.PROPERTY_OWNER,
    ActorRole.PROPERTY_MANAGER,
})

# Clearing the needs-cleaning flag after housekeeping
CLEANING_ROLES = _STAFF | {ActorRole.HOUSEKEEPING}


class Actor(BaseModel):
    """Authenticated caller"""
    model_config = ConfigDict(frozen=True)

    actor_id: UUID = Field(default_factory=uuid4)
    role: ActorRole
    name: Optional[str] = None

    def can(self, action: BookingAction) -> bool:
        return self.role in ACTION_ROLES.get(action, frozenset())

    def require(self, action: BookingAction) -> None:
        """Raise ForbiddenError unless this actor may perform action"""
        if not self.can(action):
            raise ForbiddenError(self.role, action.value)

    def can_manage_rates(self) -> bool:
        return self.role in RATE_MANAGER_ROLES

    def can_mark_cleaned(self) -> bool:
        return self.role in CLEANING_ROLES
