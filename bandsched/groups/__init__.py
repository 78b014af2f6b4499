"""Band rosters.

Membership changes are guarded: they return ``False`` instead of raising
when the change is not allowed, so callers can compose them freely.  The
owner can never be removed or demoted.
"""

import datetime as dt
import enum
import logging
from dataclasses import dataclass, field
from typing import Mapping

from bandsched.availability import MemberAvailability

logger = logging.getLogger(__name__)


class Role(str, enum.Enum):
    MEMBER = 'member'
    ADMIN = 'admin'
    OWNER = 'owner'


def _role_or_none(value) -> Role | None:
    try:
        return Role(value)
    except ValueError:
        logger.warning("Unknown group role %r", value)
        return None


@dataclass
class Member:
    user_id: str | int
    role: Role = Role.MEMBER
    instruments: list[str] = field(default_factory=list)
    joined_at: dt.datetime = field(default_factory=lambda: dt.datetime.now(dt.timezone.utc))


@dataclass
class Group:
    name: str
    created_by: str | int
    description: str = ''
    genre: list[str] = field(default_factory=list)
    members: list[Member] = field(default_factory=list)

    def __post_init__(self):
        # The creator always ends up as owner of a new group.
        if not self.is_member(self.created_by):
            self.members.append(Member(self.created_by, Role.OWNER))

    @property
    def member_count(self) -> int:
        return len(self.members)

    def _find(self, user_id) -> Member | None:
        return next((m for m in self.members if str(m.user_id) == str(user_id)), None)

    def is_member(self, user_id) -> bool:
        return self._find(user_id) is not None

    def is_admin(self, user_id) -> bool:
        member = self._find(user_id)
        return member is not None and member.role in (Role.ADMIN, Role.OWNER)

    def is_owner(self, user_id) -> bool:
        member = self._find(user_id)
        return member is not None and member.role == Role.OWNER

    def add_member(self, user_id, role=Role.MEMBER, instruments=()) -> bool:
        role = _role_or_none(role)
        if role is None or self.is_member(user_id):
            return False
        self.members.append(Member(user_id, role, list(instruments)))
        return True

    def remove_member(self, user_id) -> bool:
        if not self.is_member(user_id) or self.is_owner(user_id):
            return False
        self.members = [m for m in self.members if str(m.user_id) != str(user_id)]
        return True

    def update_member_role(self, user_id, new_role) -> bool:
        member = self._find(user_id)
        if member is None:
            return False
        new_role = _role_or_none(new_role)
        if new_role is None:
            return False
        if member.role == Role.OWNER and new_role != Role.OWNER:
            logger.warning("Refusing to demote owner %s of group %r", user_id, self.name)
            return False
        member.role = new_role
        return True

    def roster_availability(self, availability_by_user: Mapping) -> list[MemberAvailability]:
        """Availability of every member in roster order.

        Members with nothing on file get an empty availability, which makes
        any intersection over the roster empty.
        """
        roster = []
        for member in self.members:
            entry = availability_by_user.get(member.user_id)
            if entry is None:
                entry = availability_by_user.get(str(member.user_id))
            if entry is None:
                roster.append(MemberAvailability(user_id=member.user_id))
            elif isinstance(entry, MemberAvailability):
                roster.append(entry)
            else:
                roster.append(MemberAvailability.model_validate({'userId': member.user_id, **entry}))
        return roster
