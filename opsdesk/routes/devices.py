import uuid
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from ..db import get_db
from ..auth.security import require_roles
from ..models.models import RegisteredDevice
from ..schemas.devices import DeviceStatus, DeviceStatusUpdate, RegisteredDeviceResponse
from ..services.device_agent import InvalidTransition, set_device_status


router = APIRouter(prefix="/devices", tags=["devices"])


@router.get("", response_model=List[RegisteredDeviceResponse])
def list_devices(
    status: Optional[DeviceStatus] = Query(default=None),
    db: Session = Depends(get_db),
    _=Depends(require_roles("admin")),
):
    q = db.query(RegisteredDevice)
    if status:
        q = q.filter(RegisteredDevice.status == status.value)
    return q.order_by(RegisteredDevice.created_at.desc()).all()


@router.patch("/{device_id}/status", response_model=RegisteredDeviceResponse)
def update_device_status(
    device_id: uuid.UUID,
    payload: DeviceStatusUpdate,
    db: Session = Depends(get_db),
    user=Depends(require_roles("admin")),
):
    device = db.query(RegisteredDevice).filter(RegisteredDevice.id == device_id).first()
    if not device:
        raise HTTPException(status_code=404, detail="Device not found")
    try:
        return set_device_status(db, device, payload.status.value, performed_by=user.email, notes=payload.notes)
    except InvalidTransition as e:
        raise HTTPException(status_code=409, detail=str(e))
