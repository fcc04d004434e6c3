"""Audit service for security-sensitive session events."""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from authgate.models.audit import AuditEvent

logger = logging.getLogger(__name__)


class AuditService:
    """Persist immutable audit trail entries."""

    @staticmethod
    def log_event(
        db: Session,
        *,
        user_id: Optional[int],
        action: str,
        ip_address: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Optional[AuditEvent]:
        """
        Record an event in its own commit.

        Failures are logged and never propagate to the authentication flow
        that triggered the event.
        """
        event = AuditEvent(
            user_id=user_id,
            action=action,
            ip_address=ip_address,
            metadata_json=json.dumps(metadata or {}, ensure_ascii=False),
        )
        try:
            db.add(event)
            db.commit()
            db.refresh(event)
        except SQLAlchemyError as exc:
            db.rollback()
            logger.error("Failed to record audit event %s: %s", action, exc)
            return None
        return event


audit_service = AuditService()
