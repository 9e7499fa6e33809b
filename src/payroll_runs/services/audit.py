"""Audit trail recording."""

from __future__ import annotations

from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from payroll_runs.models import AuditEvent


async def record_audit(
    session: AsyncSession,
    entity_type: str,
    entity_id: UUID,
    action: str,
    actor_user_id: UUID | None = None,
    details: dict[str, Any] | None = None,
) -> AuditEvent:
    """Record an audit event; it is persisted with the caller's transaction."""
    event = AuditEvent(
        actor_user_id=actor_user_id,
        entity_type=entity_type,
        entity_id=entity_id,
        action=action,
        details_json=details,
    )
    session.add(event)
    return event


async def list_audit_events(
    session: AsyncSession,
    entity_type: str,
    entity_id: UUID,
) -> list[AuditEvent]:
    """List audit events for an entity, oldest first."""
    await session.flush()
    result = await session.execute(
        select(AuditEvent)
        .where(AuditEvent.entity_type == entity_type, AuditEvent.entity_id == entity_id)
        .order_by(AuditEvent.created_at, AuditEvent.audit_event_id)
    )
    return list(result.scalars().all())
