# Overview: Append-only audit trail for marketplace domain events.

from __future__ import annotations

import json
from typing import Optional

from ..extensions import db
from ..models import AuditEvent
from ..time_utils import utcnow

"""
Audit invariants:

- Events are appended, never updated or deleted.
- Events are written inside the same DB transaction as the domain change they
  record; the caller commits.
- No business logic lives here.
"""


def append_event(
    *,
    event_type: str,
    entity_type: str,
    entity_id: int,
    actor_user_id: int | None = None,
    note: Optional[str] = None,
    payload: Optional[dict] = None,
) -> AuditEvent:
    ev = AuditEvent(
        event_type=event_type,
        entity_type=entity_type,
        entity_id=entity_id,
        actor_user_id=actor_user_id,
        occurred_at=utcnow(),
        note=note,
        payload=json.dumps(payload, default=str, sort_keys=True) if payload else None,
    )
    db.session.add(ev)
    db.session.flush()
    return ev


def list_events(entity_type: str, entity_id: int) -> list[AuditEvent]:
    return (
        db.session.query(AuditEvent)
        .filter_by(entity_type=entity_type, entity_id=entity_id)
        .order_by(AuditEvent.id.asc())
        .all()
    )
