from typing import Any

from fastapi.encoders import jsonable_encoder
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.support.audit_log_models import AuditLog
from app.constants.activity_templates import ACTIVITY_TEMPLATES
from app.constants.activity_codes import ActivityCode

SYSTEM_ACTOR = "system"

DIFF_IGNORED_KEYS = {"created_at", "updated_at"}


def calculate_diff(old_state: dict | None, new_state: dict | None) -> dict:
    """Changed fields between two state snapshots as ``{key: {"old", "new"}}``."""
    old_state = old_state if isinstance(old_state, dict) else {}
    new_state = new_state if isinstance(new_state, dict) else {}

    diff: dict[str, dict[str, Any]] = {}
    for key in sorted(set(old_state) | set(new_state)):
        if key.startswith("_") or key in DIFF_IGNORED_KEYS:
            continue
        old_val = old_state.get(key)
        new_val = new_state.get(key)
        if old_val != new_val:
            diff[key] = {"old": old_val, "new": new_val}
    return diff


def actor_context(user) -> dict:
    if user is None:
        return {"actor_role": "System", "actor_email": SYSTEM_ACTOR}
    return {"actor_role": user.role.capitalize(), "actor_email": user.username}


async def emit_activity(
    db: AsyncSession,
    *,
    user,
    code: ActivityCode,
    entity_type: str,
    entity_id,
    previous_state: dict | None = None,
    new_state: dict | None = None,
    **context,
) -> AuditLog:
    """Add an audit row to the caller's transaction. The caller commits."""
    template = ACTIVITY_TEMPLATES.get(code)
    if not template:
        raise ValueError(f"No activity template for code {code}")

    context = {**actor_context(user), **context}
    try:
        message = template.format(**context)
    except KeyError as e:
        raise ValueError(
            f"Missing activity context key: {e.args[0]} for {code}"
        )

    previous_state = jsonable_encoder(previous_state) if previous_state is not None else None
    new_state = jsonable_encoder(new_state) if new_state is not None else None

    entry = AuditLog(
        entity_type=entity_type,
        entity_id=str(entity_id),
        action=code.value,
        previous_state=previous_state,
        new_state=new_state,
        diff=calculate_diff(previous_state, new_state) if previous_state and new_state else None,
        user_id=user.id if user is not None else None,
        username_snapshot=user.username if user is not None else SYSTEM_ACTOR,
        message=message,
    )
    db.add(entry)
    return entry
