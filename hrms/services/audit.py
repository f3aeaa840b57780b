import logging
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Optional

from sqlalchemy.orm import Session

from hrms.core.tenant import TenantContext
from hrms.models.audit_log import AuditLog

logger = logging.getLogger(__name__)


def _sanitize(obj: Any) -> Any:
    """Make nested values JSON-serializable for the audit columns."""
    if hasattr(obj, "model_dump"):
        return _sanitize(obj.model_dump())
    if isinstance(obj, dict):
        return {k: _sanitize(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [_sanitize(i) for i in obj]
    if isinstance(obj, Decimal):
        return str(obj)
    if isinstance(obj, (date, datetime)):
        return obj.isoformat()
    if hasattr(obj, "value") and isinstance(getattr(obj, "value"), str):
        return obj.value
    return obj


class AuditService:
    def __init__(self, db: Session):
        self.db = db

    def log_action(
        self,
        ctx: TenantContext,
        action: str,
        entity_type: str,
        entity_id: Optional[int],
        details: Optional[dict] = None,
        before_state: Optional[dict] = None,
        after_state: Optional[dict] = None
    ) -> Optional[AuditLog]:
        """
        Create an audit log entry in the caller's transaction.
        Strictly append-only. Flushed, not committed: the entry lands together
        with the change it describes.
        """
        try:
            db_log = AuditLog(
                company_id=ctx.company_id,
                action=action,
                entity_type=entity_type,
                entity_id=entity_id,
                user_id=ctx.user_id,
                user_role=_sanitize(ctx.role),
                details=_sanitize(details or {}),
                before_state=_sanitize(before_state),
                after_state=_sanitize(after_state)
            )
            self.db.add(db_log)
            self.db.flush()
            return db_log
        except Exception as e:
            # Never break the main app flow because of an audit failure
            logger.error(f"FAILED TO AUDIT LOG: {e}", exc_info=True)
            return None

    # Static wrapper for call sites that only hold a session
    @staticmethod
    def log(db: Session, ctx: TenantContext, *args, **kwargs) -> Optional[AuditLog]:
        return AuditService(db).log_action(ctx, *args, **kwargs)

    def list_for_entity(self, ctx: TenantContext, entity_type: str, entity_id: int):
        return self.db.query(AuditLog).filter(
            AuditLog.company_id == ctx.company_id,
            AuditLog.entity_type == entity_type,
            AuditLog.entity_id == entity_id
        ).order_by(AuditLog.id).all()
