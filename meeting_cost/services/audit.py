"""Audit sink: fire-and-forget record of who changed what."""

from typing import Any, Protocol
from uuid import UUID

import structlog

logger = structlog.get_logger()


class AuditSink(Protocol):
    """Receives audit records; failures must not affect the caller."""

    async def log(
        self,
        *,
        actor_id: UUID | None,
        org_id: UUID | None,
        action: str,
        resource_kind: str,
        resource_id: UUID,
        details: dict[str, Any] | None = None,
        ip: str | None = None,
        ua: str | None = None,
    ) -> None: ...


class LoggingAuditSink:
    """Writes audit records as structured log lines."""

    async def log(
        self,
        *,
        actor_id: UUID | None,
        org_id: UUID | None,
        action: str,
        resource_kind: str,
        resource_id: UUID,
        details: dict[str, Any] | None = None,
        ip: str | None = None,
        ua: str | None = None,
    ) -> None:
        logger.info(
            "audit",
            action=action,
            actor_id=str(actor_id) if actor_id else None,
            org_id=str(org_id) if org_id else None,
            resource_kind=resource_kind,
            resource_id=str(resource_id),
            details=details or {},
            ip=ip,
            user_agent=ua,
        )
