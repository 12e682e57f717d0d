import uuid
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..db import get_db
from ..config import settings
from ..auth.security import get_current_user
from ..models.models import HardwareAsset, NewHire, Seat
from ..schemas.assets import HardwareAssetResponse
from ..schemas.inventory import (
    BarcodeParseRequest,
    BarcodeParseResponse,
    NewHireResponse,
    SeatResponse,
)
from ..services.barcode import parse_barcode
from ..services.normalize import bytes_to_gb, format_cpu, format_gb, is_awaiting_intune_sync


router = APIRouter(prefix="/inventory", tags=["inventory"])


def _gb_display(gb: Optional[float], raw_bytes=None) -> Optional[str]:
    value = gb or bytes_to_gb(raw_bytes)
    return f"{format_gb(value)} GB" if value else None


def hardware_response(asset: HardwareAsset) -> HardwareAssetResponse:
    specs = asset.specs or {}
    row = HardwareAssetResponse.model_validate(asset)
    row.ram_display = _gb_display(asset.ram_gb, specs.get("physical_memory_bytes"))
    row.disk_display = _gb_display(asset.disk_space_gb, specs.get("total_storage_bytes"))
    row.cpu_display = format_cpu(
        asset.cpu,
        specs.get("processor_architecture"),
        specs.get("processor_count"),
        specs.get("processor_core_count"),
    )
    if specs.get("synced_via") == "intune":
        row.awaiting_sync = is_awaiting_intune_sync(specs.get("last_sync"), settings.intune_stale_hours)
    return row


# ---------- HARDWARE ----------
@router.get("/hardware", response_model=List[HardwareAssetResponse])
def list_hardware(
    status: Optional[str] = Query(default=None),
    asset_type: Optional[str] = Query(default=None),
    db: Session = Depends(get_db),
    _=Depends(get_current_user),
):
    q = db.query(HardwareAsset)
    if status:
        q = q.filter(HardwareAsset.status == status)
    if asset_type:
        q = q.filter(HardwareAsset.asset_type == asset_type)
    return [hardware_response(a) for a in q.order_by(HardwareAsset.asset_tag).all()]


# ---------- SEATS ----------
@router.get("/seats", response_model=List[SeatResponse])
def list_seats(
    account_id: Optional[uuid.UUID] = Query(default=None),
    db: Session = Depends(get_db),
    _=Depends(get_current_user),
):
    q = db.query(Seat)
    if account_id:
        q = q.filter(Seat.account_id == account_id)
    return q.order_by(Seat.seat_code).all()


# ---------- NEW HIRES ----------
@router.get("/new-hires", response_model=List[NewHireResponse])
def list_new_hires(db: Session = Depends(get_db), _=Depends(get_current_user)):
    return db.query(NewHire).order_by(NewHire.hire_date.desc(), NewHire.employee_name).all()


@router.post("/parse-barcode", response_model=BarcodeParseResponse)
def parse_scanned_barcode(payload: BarcodeParseRequest, _=Depends(get_current_user)):
    return BarcodeParseResponse(**parse_barcode(payload.text))
