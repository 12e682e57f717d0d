from typing import Any, Dict, Optional

import structlog
from fastapi import APIRouter, Body, Depends, Header, HTTPException, Query, Request
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from ..db import get_db
from ..config import settings
from ..ratelimit import limiter
from ..schemas.devices import (
    DeviceRegisterResponse,
    DeviceStatusResponse,
    DeviceSyncResponse,
)
from ..services.device_agent import (
    DeviceKeyMissing,
    DeviceNotApproved,
    InvalidDeviceKey,
    get_device_status,
    register_device,
    sync_device_inventory,
)


# Unauthenticated ingress for agents on unmanaged machines; the registration key is the credential
router = APIRouter(prefix="/device-agent", tags=["device-agent"])
logger = structlog.get_logger(__name__)

INVALID_ACTION = "Invalid action. Use: register, sync, or status"


def _register(db: Session, body: Dict[str, Any]) -> JSONResponse:
    try:
        device, created = register_device(db, body.get("device_id"), body.get("hostname"))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    payload = DeviceRegisterResponse(
        message="Device registered successfully. Awaiting approval." if created else "Device already registered",
        registration_key=device.registration_key,
        status=device.status,
    )
    return JSONResponse(status_code=201 if created else 200, content=payload.model_dump())


def _sync(db: Session, device_key: Optional[str], body: Dict[str, Any]) -> DeviceSyncResponse:
    try:
        synced_at = sync_device_inventory(db, device_key, body)
    except (DeviceKeyMissing, InvalidDeviceKey) as e:
        raise HTTPException(status_code=401, detail=str(e))
    except DeviceNotApproved as e:
        raise HTTPException(status_code=403, detail=str(e))
    except Exception as e:
        logger.error("device_sync_failed", error=str(e))
        raise HTTPException(status_code=500, detail="Failed to sync device data")
    return DeviceSyncResponse(message="Device inventory synced successfully", synced_at=synced_at)


@router.post("")
@limiter.limit(settings.device_agent_rate_limit)
def device_agent_post(
    request: Request,
    action: Optional[str] = Query(default=None),
    body: Any = Body(default=None),
    x_device_key: Optional[str] = Header(default=None),
    db: Session = Depends(get_db),
):
    # Malformed payloads are coerced to an empty object so the key check always runs
    payload = body if isinstance(body, dict) else {}
    if action == "register":
        return _register(db, payload)
    if action == "sync":
        return _sync(db, x_device_key, payload)
    raise HTTPException(status_code=400, detail=INVALID_ACTION)


@router.get("", response_model=DeviceStatusResponse)
@limiter.limit(settings.device_agent_rate_limit)
def device_agent_get(
    request: Request,
    action: Optional[str] = Query(default=None),
    key: Optional[str] = Query(default=None),
    db: Session = Depends(get_db),
):
    if action != "status":
        raise HTTPException(status_code=400, detail=INVALID_ACTION)
    if not key:
        raise HTTPException(status_code=400, detail="Missing key parameter")
    device = get_device_status(db, key)
    if device is None:
        raise HTTPException(status_code=404, detail="Device not found")
    return DeviceStatusResponse(status=device.status, last_sync_at=device.last_sync_at, sync_count=device.sync_count or 0)
