import uuid
from datetime import datetime
from typing import Optional
from enum import Enum

from pydantic import BaseModel


class DeviceStatus(str, Enum):
    pending = "pending"
    approved = "approved"
    rejected = "rejected"
    revoked = "revoked"


class DeviceRegisterResponse(BaseModel):
    message: str
    registration_key: str
    status: str


class DeviceSyncResponse(BaseModel):
    message: str
    synced_at: datetime


class DeviceStatusResponse(BaseModel):
    status: str
    last_sync_at: Optional[datetime] = None
    sync_count: int = 0


class DeviceStatusUpdate(BaseModel):
    status: DeviceStatus
    notes: Optional[str] = None


class RegisteredDeviceResponse(BaseModel):
    id: uuid.UUID
    device_id: str
    hostname: Optional[str] = None
    status: DeviceStatus
    approved_at: Optional[datetime] = None
    approved_by: Optional[str] = None
    last_sync_at: Optional[datetime] = None
    sync_count: Optional[int] = 0
    notes: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True

