"""
Append-only audit trail.

Activities are written after the primary mutation has been persisted. A
failed write is logged and otherwise ignored; it never changes the outcome
of the operation that triggered it.
"""

import logging
from typing import Any, Dict, Optional

from database import Repository
from schemas import Activity

logger = logging.getLogger(__name__)


def record_activity(
    repo: Repository,
    user_id: str,
    action: str,
    entity_type: str,
    entity_id: Any,
    workspace_id: Optional[str] = None,
    project_id: Optional[str] = None,
    affected_user: Optional[str] = None,
    details: Optional[Dict[str, Any]] = None,
) -> Optional[dict]:
    try:
        entry = Activity(
            user_id=user_id,
            action=action,
            entity_type=entity_type,
            entity_id=str(entity_id),
            workspace_id=workspace_id,
            project_id=project_id,
            affected_user=affected_user,
            details=details,
        )
        return repo.create(entry)
    except Exception:
        logger.exception(
            f"Failed to record activity {action} on {entity_type} {entity_id}",
            extra={"user_id": user_id, "action": action, "entity_type": entity_type, "entity_id": str(entity_id)},
        )
        return None
