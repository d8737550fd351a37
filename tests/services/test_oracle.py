"""Tests for permission and wage oracles."""

import json
from pathlib import Path
from uuid import uuid4

import pytest

from meeting_cost.cache import MemoryCache, SafeCache, has_permission_key
from meeting_cost.services.oracle import (
    CachedPermissionOracle,
    PermissionGrant,
    PersonSubject,
    RoleSubject,
    StaticPermissionOracle,
    StaticWageSource,
    load_policy,
)

ORG = uuid4()
OTHER_ORG = uuid4()
PERSON = uuid4()
ROLE = uuid4()
MEETING = uuid4()


class TestStaticPermissionOracle:
    async def test_person_grant(self) -> None:
        oracle = StaticPermissionOracle(
            [PermissionGrant(PersonSubject(PERSON), ORG, "meeting", "read")]
        )
        assert await oracle.may(PERSON, ORG, "meeting", MEETING, "read") is True
        assert await oracle.may(PERSON, ORG, "meeting", MEETING, "update") is False
        assert await oracle.may(PERSON, OTHER_ORG, "meeting", MEETING, "read") is False

    async def test_role_grant_via_assignment(self) -> None:
        oracle = StaticPermissionOracle(
            [PermissionGrant(RoleSubject(ROLE), ORG, "meeting", "*")]
        )
        assert await oracle.may(PERSON, ORG, "meeting", None, "create") is False

        oracle.assign_role(PERSON, ORG, ROLE)
        assert await oracle.may(PERSON, ORG, "meeting", None, "create") is True

    async def test_targeted_grant_only_covers_its_resource(self) -> None:
        oracle = StaticPermissionOracle()
        oracle.grant(
            PermissionGrant(
                PersonSubject(PERSON), ORG, "meeting", "stop", target_resource_id=MEETING
            )
        )
        assert await oracle.may(PERSON, ORG, "meeting", MEETING, "stop") is True
        assert await oracle.may(PERSON, ORG, "meeting", uuid4(), "stop") is False

    async def test_denied_grant_is_ignored(self) -> None:
        oracle = StaticPermissionOracle(
            [PermissionGrant(PersonSubject(PERSON), ORG, "meeting", "*", allowed=False)]
        )
        assert await oracle.may(PERSON, ORG, "meeting", MEETING, "read") is False


class TestCachedPermissionOracle:
    async def test_answers_are_cached(self) -> None:
        inner = StaticPermissionOracle(
            [PermissionGrant(PersonSubject(PERSON), ORG, "meeting", "read")]
        )
        backend = MemoryCache()
        oracle = CachedPermissionOracle(inner, SafeCache(backend), ttl_seconds=60)

        assert await oracle.may(PERSON, ORG, "meeting", MEETING, "read") is True
        assert await oracle.may(PERSON, ORG, "meeting", MEETING, "delete") is False

        assert has_permission_key(PERSON, ORG, "meeting", MEETING, "read") in backend
        assert (
            await backend.get(has_permission_key(PERSON, ORG, "meeting", MEETING, "delete"))
            == "0"
        )

    async def test_cached_answer_wins(self) -> None:
        backend = MemoryCache()
        await backend.set(has_permission_key(PERSON, ORG, "meeting", None, "create"), "1", 60)
        oracle = CachedPermissionOracle(StaticPermissionOracle(), SafeCache(backend), 60)

        assert await oracle.may(PERSON, ORG, "meeting", None, "create") is True


class TestWagesAndPolicy:
    async def test_default_wage_and_fallback(self) -> None:
        wages = StaticWageSource({ORG: 85.0}, fallback=25.0)
        assert await wages.default_wage(ORG) == 85.0
        assert await wages.default_wage(OTHER_ORG) == 25.0

    async def test_load_policy_document(self, tmp_path: Path) -> None:
        path = tmp_path / "policy.json"
        path.write_text(
            json.dumps(
                {
                    "grants": [
                        {
                            "subject": {"kind": "role", "id": str(ROLE)},
                            "org_id": str(ORG),
                            "resource_kind": "meeting",
                            "activity": "*",
                        }
                    ],
                    "role_assignments": [
                        {"person_id": str(PERSON), "role_id": str(ROLE), "org_id": str(ORG)}
                    ],
                    "org_wages": {str(ORG): 72.5},
                    "member_wages": [
                        {"person_id": str(PERSON), "org_id": str(ORG), "hourly_wage": 90}
                    ],
                }
            )
        )

        policy = load_policy(path)
        oracle = StaticPermissionOracle.from_policy(policy)
        wages = StaticWageSource.from_policy(policy)

        assert await oracle.may(PERSON, ORG, "meeting", MEETING, "start") is True
        assert await wages.default_wage(ORG) == 72.5
        assert await wages.member_wage(PERSON, ORG) == 90.0

    def test_rejects_negative_member_wage(self, tmp_path: Path) -> None:
        path = tmp_path / "policy.json"
        path.write_text(
            json.dumps(
                {
                    "member_wages": [
                        {"person_id": str(PERSON), "org_id": str(ORG), "hourly_wage": -1}
                    ]
                }
            )
        )
        with pytest.raises(ValueError):
            load_policy(path)
