from payroll_engine.services.base import BaseService
from payroll_engine.models.audit_log import AuditLog
from typing import Any, Optional

class AuditService(BaseService):
    def log_action(
        self,
        action: str,
        entity_type: str,
        entity_id: Optional[str],
        actor: Optional[str],
        details: dict,
        before_state: Optional[dict] = None,
        after_state: Optional[dict] = None
    ) -> AuditLog:
        """
        Add an append-only audit entry to the current session.

        Not committed here: the entry lands in the same transaction as the
        action it describes, so a rolled back action leaves no trace.
        """
        def sanitize(obj: Any):
            if hasattr(obj, "model_dump"):
                return obj.model_dump(mode="json")
            if isinstance(obj, dict):
                return {k: sanitize(v) for k, v in obj.items()}
            if isinstance(obj, (list, tuple)):
                return [sanitize(i) for i in obj]
            if hasattr(obj, "isoformat"):
                return obj.isoformat()
            if obj is None or isinstance(obj, (str, int, float, bool)):
                return obj
            return str(obj)

        db_log = AuditLog(
            action=action,
            entity_type=entity_type,
            entity_id=entity_id,
            actor=actor,
            details=sanitize(details),
            before_state=sanitize(before_state),
            after_state=sanitize(after_state)
        )
        self.db.add(db_log)
        self._logger.debug(f"Audit entry queued: {action} on {entity_type} {entity_id}")
        return db_log
