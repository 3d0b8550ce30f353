from __future__ import annotations

from typing import Any

from sqlalchemy import inspect
from sqlalchemy.orm import Session

from clinic_feedback.models.audit_log import AuditLog
from clinic_feedback.models.user import User


def snapshot_model(obj: Any | None) -> dict | None:
    if obj is None:
        return None
    data: dict[str, Any] = {}
    mapper = inspect(obj).mapper
    for column in mapper.columns:
        key = column.key
        value = getattr(obj, key)
        if hasattr(value, "value"):
            value = value.value
        elif hasattr(value, "isoformat"):
            value = value.isoformat()
        elif isinstance(value, bytes):
            value = f"<{len(value)} bytes>"
        data[key] = value
    return data


def log_event(
    db: Session,
    *,
    actor: User | None,
    action: str,
    entity_type: str,
    entity_id: str,
    before_obj: Any | None = None,
    after_obj: Any | None = None,
    before_data: dict | None = None,
    after_data: dict | None = None,
) -> AuditLog:
    entry = AuditLog(
        actor_user_id=actor.id if actor else None,
        actor_login=actor.login if actor else None,
        action=action,
        entity_type=entity_type,
        entity_id=str(entity_id),
        before_json=before_data if before_data is not None else snapshot_model(before_obj),
        after_json=after_data if after_data is not None else snapshot_model(after_obj),
    )
    db.add(entry)
    return entry
