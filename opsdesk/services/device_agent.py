"""
Device agent enrollment and inventory ingestion.

Agents on unmanaged endpoints register once, wait for an admin to approve
them, then push inventory snapshots authenticated by their registration key.
Everything an agent sends is treated as hostile: every field goes through
the normalizer before it reaches the store.
"""
import secrets
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Tuple

import structlog
from sqlalchemy.orm import Session

from .asset_store import upsert_hardware_asset
from .audit import create_audit_log
from .normalize import sanitize_number, sanitize_text
from ..models.models import RegisteredDevice
from ..schemas.assets import AssetSpecs


logger = structlog.get_logger(__name__)

KEY_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"  # no 0/O, 1/I
KEY_LENGTH = 24
KEY_GROUP = 4

MAX_SOFTWARE_ENTRIES = 500
MAX_SOFTWARE_NAME = 200

ALLOWED_TRANSITIONS = {
    "pending": {"approved", "rejected"},
    "approved": {"revoked"},
    "rejected": {"approved"},
    "revoked": {"approved"},
}


class DeviceAgentError(Exception):
    pass


class DeviceKeyMissing(DeviceAgentError):
    pass


class InvalidDeviceKey(DeviceAgentError):
    pass


class DeviceNotApproved(DeviceAgentError):
    def __init__(self, status: str):
        self.status = status
        super().__init__(f"Device not approved. Current status: {status}")


class InvalidTransition(DeviceAgentError):
    def __init__(self, current: str, target: str):
        self.current = current
        self.target = target
        super().__init__(f"Cannot change device status from {current} to {target}")


def generate_registration_key() -> str:
    raw = "".join(secrets.choice(KEY_ALPHABET) for _ in range(KEY_LENGTH))
    return "-".join(raw[i:i + KEY_GROUP] for i in range(0, KEY_LENGTH, KEY_GROUP))


def key_prefix(key: Optional[str]) -> Optional[str]:
    return f"{key[:KEY_GROUP]}-****" if key else None


def register_device(db: Session, device_id: Any, hostname: Any) -> Tuple[RegisteredDevice, bool]:
    """
    Enroll a device, or return its existing registration.

    Returns (device, created). Raises ValueError when device_id is unusable.
    """
    device_id = sanitize_text(device_id, 100)
    hostname = sanitize_text(hostname, 100)
    if not device_id:
        raise ValueError("device_id is required")

    existing = db.query(RegisteredDevice).filter(RegisteredDevice.device_id == device_id).first()
    if existing:
        return existing, False

    device = RegisteredDevice(
        device_id=device_id,
        hostname=hostname,
        registration_key=generate_registration_key(),
        status="pending",
        sync_count=0,
    )
    db.add(device)
    db.commit()
    db.refresh(device)
    logger.info("device_registered", device_id=device_id, hostname=hostname, key=key_prefix(device.registration_key))
    return device, True


def authenticate_device(db: Session, device_key: Optional[str]) -> RegisteredDevice:
    if not device_key:
        raise DeviceKeyMissing("Missing device key")
    device = db.query(RegisteredDevice).filter(RegisteredDevice.registration_key == device_key).first()
    if device is None:
        logger.warning("device_key_rejected", key=key_prefix(device_key))
        raise InvalidDeviceKey("Invalid device key")
    if device.status != "approved":
        logger.warning("device_sync_not_approved", device_id=device.device_id, status=device.status)
        raise DeviceNotApproved(device.status)
    return device


def _software_list(value: Any) -> list:
    if not isinstance(value, list):
        return []
    cleaned = (sanitize_text(s, MAX_SOFTWARE_NAME) for s in value[:MAX_SOFTWARE_ENTRIES])
    return [s for s in cleaned if s]


def build_agent_asset_record(device: RegisteredDevice, inventory: Dict[str, Any], synced_at: datetime) -> Dict[str, Any]:
    # Filed under the registered id so one approved key cannot overwrite another device's asset
    specs = AssetSpecs(
        os_name=sanitize_text(inventory.get("os_name"), 100),
        os_version=sanitize_text(inventory.get("os_version"), 50),
        os_build=sanitize_text(inventory.get("os_build"), 50),
        ip_address=sanitize_text(inventory.get("ip_address"), 50),
        domain=sanitize_text(inventory.get("domain"), 100),
        processor_count=sanitize_number(inventory.get("processor_count"), min_value=1, digits=0),
        processor_core_count=sanitize_number(inventory.get("processor_core_count"), min_value=1, digits=0),
        installed_software=_software_list(inventory.get("installed_software")),
        last_boot_time=sanitize_text(inventory.get("last_boot_time"), 50),
        reported_device_id=sanitize_text(inventory.get("device_id"), 100),
        synced_via="device-agent",
        last_agent_sync=synced_at.isoformat(),
    )
    return {
        "asset_tag": device.device_id,
        "asset_type": "Workstation",
        "hostname": sanitize_text(inventory.get("hostname"), 100),
        "serial_number": sanitize_text(inventory.get("serial_number"), 100),
        "brand": sanitize_text(inventory.get("brand"), 100),
        "model": sanitize_text(inventory.get("model"), 100),
        "cpu": sanitize_text(inventory.get("cpu"), 200),
        "ram_gb": sanitize_number(inventory.get("ram_gb"), digits=2),
        "disk_space_gb": sanitize_number(inventory.get("disk_space_gb"), digits=2),
        "disk_type": sanitize_text(inventory.get("disk_type"), 50),
        "logged_in_user": sanitize_text(inventory.get("logged_in_user"), 100),
        "mac_address": sanitize_text(inventory.get("mac_address"), 50),
        "encryption_status": inventory.get("encryption_status") is True,
        "antivirus_status": sanitize_text(inventory.get("antivirus_status"), 50) or "Unknown",
        "status": "In Use",
        "specs": specs.to_json(),
    }


def sync_device_inventory(db: Session, device_key: Optional[str], inventory: Any) -> datetime:
    """Apply one inventory snapshot. Returns the sync timestamp."""
    device = authenticate_device(db, device_key)
    if not isinstance(inventory, dict):
        inventory = {}

    synced_at = datetime.now(timezone.utc)
    record = build_agent_asset_record(device, inventory, synced_at)
    try:
        upsert_hardware_asset(db, record)
        device.hostname = record["hostname"] or device.hostname
        device.last_sync_at = synced_at
        device.sync_count = (device.sync_count or 0) + 1
        device.updated_at = synced_at
        db.commit()
    except Exception:
        db.rollback()
        raise

    logger.info("device_inventory_synced", device_id=device.device_id, sync_count=device.sync_count)
    return synced_at


def get_device_status(db: Session, key: str) -> Optional[RegisteredDevice]:
    return db.query(RegisteredDevice).filter(RegisteredDevice.registration_key == key).first()


def set_device_status(
    db: Session,
    device: RegisteredDevice,
    status: str,
    performed_by: Optional[str] = None,
    notes: Optional[str] = None,
) -> RegisteredDevice:
    current = device.status
    if status not in ALLOWED_TRANSITIONS.get(current, set()):
        raise InvalidTransition(current, status)

    now = datetime.now(timezone.utc)
    device.status = status
    device.updated_at = now
    if status == "approved":
        device.approved_at = now
        device.approved_by = performed_by
    if notes is not None:
        device.notes = sanitize_text(notes, 1000)
    db.commit()
    db.refresh(device)

    logger.info("device_status_changed", device_id=device.device_id, previous=current, status=status, by=performed_by)
    create_audit_log(
        db,
        entity_type="registered_device",
        action="status_change",
        entity_id=str(device.id),
        performed_by=performed_by,
        details={"device_id": device.device_id, "before": current, "after": status},
    )
    return device
