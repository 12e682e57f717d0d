import uuid
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..db import engine, get_db
from ..config import settings
from ..auth.security import require_roles
from ..services.audit import get_audit_logs


router = APIRouter(prefix="/integrations", tags=["integrations"])

SYNC_ENTITY_TYPES = ("intune_sync", "new_hire_sync", "license_sync")


class AuditLogResponse(BaseModel):
    id: uuid.UUID
    entity_type: str
    entity_id: Optional[str] = None
    action: str
    performed_by: Optional[str] = None
    details: Optional[dict] = None
    performed_at: datetime

    class Config:
        from_attributes = True


@router.get("/status")
def status():
    # DB health
    db_ok = True
    try:
        with engine.connect() as conn:
            conn.execute(text("select 1"))
    except SQLAlchemyError:
        db_ok = False

    graph_ok = bool(
        settings.graph_app_tenant_id and settings.graph_app_client_id and settings.graph_app_client_secret
    )
    return {"db": db_ok, "graph": graph_ok}


@router.get("/sync-runs", response_model=List[AuditLogResponse])
def list_sync_runs(
    entity_type: Optional[str] = Query(default=None),
    limit: int = Query(default=50, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_db),
    _=Depends(require_roles("admin", "operator")),
):
    if entity_type and entity_type not in SYNC_ENTITY_TYPES:
        return []
    return get_audit_logs(db, entity_type=entity_type, entity_types=list(SYNC_ENTITY_TYPES), limit=limit, offset=offset)
