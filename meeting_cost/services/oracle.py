"""Permission and wage oracles consumed by the engine.

The engine only sees the ``PermissionOracle`` and ``WageSource`` protocols.
The bundled implementations evaluate a static policy document; a deployment
can plug in any other source behind the same protocols.
"""

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Literal, Protocol
from uuid import UUID

import structlog
from pydantic import BaseModel, Field

from meeting_cost.cache import SafeCache, has_permission_key

logger = structlog.get_logger()

ANY_ACTIVITY = "*"


class PermissionOracle(Protocol):
    """Answers "may actor A perform activity X on a resource in org O?"."""

    async def may(
        self,
        actor_id: UUID,
        org_id: UUID,
        resource_kind: str,
        resource_id: UUID | None,
        activity: str,
    ) -> bool: ...


class WageSource(Protocol):
    """Hourly wages per organization and per member."""

    async def default_wage(self, org_id: UUID) -> float: ...

    async def member_wage(self, person_id: UUID, org_id: UUID) -> float | None: ...


@dataclass(frozen=True)
class RoleSubject:
    """Grant attached to a role."""

    id: UUID


@dataclass(frozen=True)
class PersonSubject:
    """Grant attached directly to a person."""

    id: UUID


PermissionSubject = RoleSubject | PersonSubject


class SubjectRef(BaseModel):
    """Serialized form of a permission subject."""

    kind: Literal["role", "person"]
    id: UUID

    def to_subject(self) -> PermissionSubject:
        if self.kind == "role":
            return RoleSubject(self.id)
        return PersonSubject(self.id)


class GrantRecord(BaseModel):
    """One permission grant as stored in a policy document."""

    subject: SubjectRef
    org_id: UUID
    resource_kind: str = Field(description="e.g. meeting")
    activity: str = Field(description="create, read, update, start, stop, delete or *")
    target_resource_id: UUID | None = Field(
        default=None, description="Specific resource, None for all"
    )
    allowed: bool = True


class RoleAssignmentRecord(BaseModel):
    person_id: UUID
    role_id: UUID
    org_id: UUID


class MemberWageRecord(BaseModel):
    person_id: UUID
    org_id: UUID
    hourly_wage: float = Field(ge=0)


class PolicyDocument(BaseModel):
    """Access grants and wage table for the static oracle."""

    grants: list[GrantRecord] = Field(default_factory=list)
    role_assignments: list[RoleAssignmentRecord] = Field(default_factory=list)
    org_wages: dict[UUID, float] = Field(default_factory=dict)
    member_wages: list[MemberWageRecord] = Field(default_factory=list)


def load_policy(path: str | Path) -> PolicyDocument:
    """Read a policy document from a JSON file."""
    raw = Path(path).read_text(encoding="utf-8")
    policy = PolicyDocument.model_validate(json.loads(raw))
    logger.info(
        "policy loaded",
        path=str(path),
        grants=len(policy.grants),
        organizations=len(policy.org_wages),
    )
    return policy


@dataclass(frozen=True)
class PermissionGrant:
    subject: PermissionSubject
    org_id: UUID
    resource_kind: str
    activity: str
    target_resource_id: UUID | None = None
    allowed: bool = True

    def covers(
        self,
        org_id: UUID,
        resource_kind: str,
        resource_id: UUID | None,
        activity: str,
    ) -> bool:
        if not self.allowed or self.org_id != org_id:
            return False
        if self.resource_kind != resource_kind:
            return False
        if self.activity not in (activity, ANY_ACTIVITY):
            return False
        return self.target_resource_id is None or self.target_resource_id == resource_id


class StaticPermissionOracle:
    """Evaluates grants held in memory.

    Person grants and role grants are resolved independently and OR-ed:
    the actor is allowed when either branch holds a covering grant.
    """

    def __init__(
        self,
        grants: list[PermissionGrant] | None = None,
        role_assignments: dict[tuple[UUID, UUID], set[UUID]] | None = None,
    ):
        """Initialize oracle.

        Args:
            grants: Permission grants for roles and people
            role_assignments: (person_id, org_id) -> role ids held there
        """
        self._grants = list(grants or [])
        self._roles = {k: set(v) for k, v in (role_assignments or {}).items()}

    @classmethod
    def from_policy(cls, policy: PolicyDocument) -> "StaticPermissionOracle":
        grants = [
            PermissionGrant(
                subject=g.subject.to_subject(),
                org_id=g.org_id,
                resource_kind=g.resource_kind,
                activity=g.activity,
                target_resource_id=g.target_resource_id,
                allowed=g.allowed,
            )
            for g in policy.grants
        ]
        roles: dict[tuple[UUID, UUID], set[UUID]] = {}
        for a in policy.role_assignments:
            roles.setdefault((a.person_id, a.org_id), set()).add(a.role_id)
        return cls(grants, roles)

    def grant(self, grant: PermissionGrant) -> None:
        self._grants.append(grant)

    def assign_role(self, person_id: UUID, org_id: UUID, role_id: UUID) -> None:
        self._roles.setdefault((person_id, org_id), set()).add(role_id)

    def _matches(self, subject: PermissionSubject, *scope) -> bool:
        return any(g.subject == subject and g.covers(*scope) for g in self._grants)

    async def may(
        self,
        actor_id: UUID,
        org_id: UUID,
        resource_kind: str,
        resource_id: UUID | None,
        activity: str,
    ) -> bool:
        scope = (org_id, resource_kind, resource_id, activity)
        if self._matches(PersonSubject(actor_id), *scope):
            return True
        role_ids = self._roles.get((actor_id, org_id), set())
        return any(self._matches(RoleSubject(role_id), *scope) for role_id in role_ids)


class CachedPermissionOracle:
    """Caches another oracle's answers for a short TTL."""

    def __init__(self, inner: PermissionOracle, cache: SafeCache, ttl_seconds: int):
        self._inner = inner
        self._cache = cache
        self._ttl = ttl_seconds

    async def may(
        self,
        actor_id: UUID,
        org_id: UUID,
        resource_kind: str,
        resource_id: UUID | None,
        activity: str,
    ) -> bool:
        key = has_permission_key(actor_id, org_id, resource_kind, resource_id, activity)
        cached = await self._cache.get(key)
        if cached is not None:
            return cached == "1"
        allowed = await self._inner.may(
            actor_id, org_id, resource_kind, resource_id, activity
        )
        await self._cache.set(key, "1" if allowed else "0", self._ttl)
        return allowed


class StaticWageSource:
    """Org default wages with optional per-member overrides."""

    def __init__(
        self,
        org_wages: dict[UUID, float] | None = None,
        member_wages: dict[tuple[UUID, UUID], float] | None = None,
        fallback: float = 0.0,
    ):
        self._org_wages = dict(org_wages or {})
        self._member_wages = dict(member_wages or {})
        self._fallback = fallback

    @classmethod
    def from_policy(cls, policy: PolicyDocument) -> "StaticWageSource":
        return cls(
            org_wages=policy.org_wages,
            member_wages={(m.person_id, m.org_id): m.hourly_wage for m in policy.member_wages},
        )

    async def default_wage(self, org_id: UUID) -> float:
        wage = self._org_wages.get(org_id)
        if wage is None:
            logger.warning("no default wage for organization", org_id=str(org_id))
            return self._fallback
        return wage

    async def member_wage(self, person_id: UUID, org_id: UUID) -> float | None:
        return self._member_wages.get((person_id, org_id))
