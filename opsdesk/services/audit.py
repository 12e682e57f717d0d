"""
Audit logging service.
Append-only audit log with integrity hashing.
"""
import hashlib
import json
from datetime import datetime
from typing import Optional, Dict, List
from sqlalchemy.orm import Session

from ..models.models import AuditLog
from ..config import settings


def create_audit_log(
    db: Session,
    entity_type: str,
    action: str,
    entity_id: Optional[str] = None,
    performed_by: Optional[str] = None,
    details: Optional[Dict] = None,
    integrity_secret: Optional[str] = None
) -> AuditLog:
    """
    Create an append-only audit log entry.

    Args:
        db: Database session
        entity_type: Type of entity (intune_sync|new_hire_sync|license_sync|registered_device)
        action: Action performed (sync|status_change)
        entity_id: Entity ID, when the entry concerns a single row
        performed_by: Email of the user (or "system" for scheduled runs)
        details: Run counters or before/after values
        integrity_secret: Secret for integrity hash (defaults to JWT_SECRET)

    Returns:
        Created AuditLog object
    """
    performed_at = datetime.utcnow().replace(tzinfo=None)

    integrity_hash = None
    if integrity_secret is None:
        integrity_secret = settings.jwt_secret

    if integrity_secret:
        canonical_data = {
            "entity_type": entity_type,
            "entity_id": str(entity_id) if entity_id else None,
            "action": action,
            "performed_by": performed_by,
            "performed_at": performed_at.isoformat(),
            "details": details,
        }

        # Remove None values and sort keys for consistency
        canonical_data = {k: v for k, v in canonical_data.items() if v is not None}
        canonical_json = json.dumps(canonical_data, sort_keys=True, default=str)

        hash_input = f"{canonical_json}:{integrity_secret}"
        integrity_hash = hashlib.sha256(hash_input.encode()).hexdigest()

    audit_log = AuditLog(
        entity_type=entity_type,
        entity_id=str(entity_id) if entity_id else None,
        action=action,
        performed_by=performed_by or "system",
        details=details,
        performed_at=performed_at,
        integrity_hash=integrity_hash,
    )

    db.add(audit_log)
    db.commit()
    db.refresh(audit_log)

    return audit_log


def get_audit_logs(
    db: Session,
    entity_type: Optional[str] = None,
    entity_types: Optional[List[str]] = None,
    limit: int = 100,
    offset: int = 0
) -> list:
    query = db.query(AuditLog)

    if entity_type:
        query = query.filter(AuditLog.entity_type == entity_type)
    elif entity_types:
        query = query.filter(AuditLog.entity_type.in_(entity_types))

    query = query.order_by(AuditLog.performed_at.desc())
    query = query.limit(limit).offset(offset)

    return query.all()

