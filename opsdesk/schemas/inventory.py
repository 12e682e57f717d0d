import uuid
from datetime import datetime, date
from typing import Optional

from pydantic import BaseModel


class SeatResponse(BaseModel):
    id: uuid.UUID
    seat_code: str
    account_id: Optional[uuid.UUID] = None
    status: Optional[str] = None
    assigned_agent: Optional[str] = None
    site: Optional[str] = None
    floor: Optional[str] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class NewHireResponse(BaseModel):
    id: uuid.UUID
    employee_name: str
    employee_id: Optional[str] = None
    hire_date: date
    account_id: Optional[uuid.UUID] = None
    assigned_seat_id: Optional[uuid.UUID] = None
    pc_imaged: bool = False
    software_installed: bool = False
    headset_issued: bool = False
    account_access_provisioned: bool = False
    status: Optional[str] = None
    notes: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class BarcodeParseRequest(BaseModel):
    text: str


class BarcodeParseResponse(BaseModel):
    asset_tag: Optional[str] = None
    brand: Optional[str] = None
    model: Optional[str] = None
    serial_number: Optional[str] = None
    mac_address: Optional[str] = None
    status: Optional[str] = None
    asset_type: Optional[str] = None
    hostname: Optional[str] = None
