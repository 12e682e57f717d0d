import structlog
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from ..db import get_db
from ..auth.security import require_roles
from ..services.graph_client import GraphClient, GraphConfigError, GraphError
from ..services.intune_sync import sync_managed_devices
from ..services.new_hire_sync import sync_new_hires
from ..services.license_sync import sync_licenses
from ..schemas.sync import IntuneSyncResult, NewHireSyncResult, LicenseSyncResult


router = APIRouter(prefix="/sync", tags=["sync"])
logger = structlog.get_logger(__name__)

SYNC_ROLES = ("admin", "operator")


def get_graph_client() -> GraphClient:
    try:
        return GraphClient()
    except GraphConfigError as e:
        logger.error("graph_not_configured")
        raise HTTPException(status_code=500, detail=str(e))


def _upstream_failure(job: str, e: GraphError) -> HTTPException:
    logger.error("sync_job_failed", job=job, error=str(e))
    return HTTPException(status_code=502, detail=str(e))


# The role dependency is declared before the client so callers are rejected before Graph is touched
@router.post("/intune", response_model=IntuneSyncResult)
def run_intune_sync(
    user=Depends(require_roles(*SYNC_ROLES)),
    client: GraphClient = Depends(get_graph_client),
    db: Session = Depends(get_db),
):
    try:
        return sync_managed_devices(db, client, performed_by=user.email)
    except GraphError as e:
        raise _upstream_failure("intune", e)


@router.post("/new-hires", response_model=NewHireSyncResult)
def run_new_hire_sync(
    user=Depends(require_roles(*SYNC_ROLES)),
    client: GraphClient = Depends(get_graph_client),
    db: Session = Depends(get_db),
):
    try:
        return sync_new_hires(db, client, performed_by=user.email)
    except GraphError as e:
        raise _upstream_failure("new_hires", e)


@router.post("/licenses", response_model=LicenseSyncResult)
def run_license_sync(
    user=Depends(require_roles(*SYNC_ROLES)),
    client: GraphClient = Depends(get_graph_client),
    db: Session = Depends(get_db),
):
    try:
        return sync_licenses(db, client, performed_by=user.email)
    except GraphError as e:
        raise _upstream_failure("licenses", e)
