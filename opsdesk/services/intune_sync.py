"""
Intune -> hardware_assets reconciliation.

Brings the inventory's view of managed devices into agreement with Intune.
Each device is upserted by a tag derived from its Intune id, so repeated runs
update the same row. A device that fails to sync is counted and skipped; it
never aborts the rest of the batch.
"""
from typing import Any, Dict, Optional, Tuple

import structlog
from sqlalchemy.orm import Session

from .asset_store import upsert_hardware_asset
from .audit import create_audit_log
from .graph_client import GraphClient, GraphError
from .normalize import (
    bytes_to_gb,
    is_uuid,
    map_architecture,
    round_half_up,
    sanitize_number,
    sanitize_text,
    sanitize_user_string,
)
from ..schemas.assets import AssetSpecs
from ..schemas.sync import IntuneSyncResult


logger = structlog.get_logger(__name__)

ASSET_TAG_PREFIX = "INTUNE-"
ASSET_TAG_ID_LENGTH = 8

COMPLIANCE_STATUS = {
    "compliant": "In Use",
    "noncompliant": "For Repair",
}

# user id -> {"displayName", "userPrincipalName"} or None when lookup failed
UserCache = Dict[str, Optional[Dict[str, Any]]]


def derive_asset_tag(device_id: str) -> str:
    return f"{ASSET_TAG_PREFIX}{device_id[:ASSET_TAG_ID_LENGTH].upper()}"


def validate_device(device: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    """Clean one managedDevice payload; None when the id is missing or malformed."""
    device_id = device.get("id") if isinstance(device, dict) else None
    if not is_uuid(device_id):
        return None

    arch = device.get("processorArchitecture")
    return {
        "id": device_id,
        "deviceName": sanitize_text(device.get("deviceName"), 255),
        "managedDeviceOwnerType": sanitize_text(device.get("managedDeviceOwnerType"), 50),
        "enrolledDateTime": sanitize_text(device.get("enrolledDateTime"), 50),
        "lastSyncDateTime": sanitize_text(device.get("lastSyncDateTime"), 50),
        "operatingSystem": sanitize_text(device.get("operatingSystem"), 100),
        "osVersion": sanitize_text(device.get("osVersion"), 50),
        "complianceState": sanitize_text(device.get("complianceState"), 50),
        "model": sanitize_text(device.get("model"), 100),
        "manufacturer": sanitize_text(device.get("manufacturer"), 100),
        "serialNumber": sanitize_text(device.get("serialNumber"), 100),
        "userId": sanitize_text(device.get("userId"), 100),
        "userDisplayName": sanitize_text(device.get("userDisplayName"), 255),
        "userPrincipalName": sanitize_text(device.get("userPrincipalName"), 255),
        "physicalMemoryInBytes": sanitize_number(device.get("physicalMemoryInBytes")),
        "totalStorageSpaceInBytes": sanitize_number(device.get("totalStorageSpaceInBytes")),
        "freeStorageSpaceInBytes": sanitize_number(device.get("freeStorageSpaceInBytes")),
        "processorArchitecture": arch if isinstance(arch, int) and not isinstance(arch, bool) else sanitize_text(arch, 50),
        "isEncrypted": device.get("isEncrypted") if isinstance(device.get("isEncrypted"), bool) else None,
        "azureADDeviceId": sanitize_text(device.get("azureADDeviceId"), 100),
    }


def needs_detail_fetch(device: Dict[str, Any]) -> bool:
    # Some tenants omit hardware fields from the list call
    memory = device.get("physicalMemoryInBytes")
    return not memory or device.get("totalStorageSpaceInBytes") is None


def resolve_user(client: GraphClient, device: Dict[str, Any], cache: UserCache) -> Tuple[Optional[str], Optional[str]]:
    """Return (display name, principal name) for the device's primary user. Never returns GUIDs."""
    display_name = principal_name = None

    user_id = (device.get("userId") or "").strip()
    if user_id:
        if user_id not in cache:
            try:
                cache[user_id] = client.get_user(user_id)
            except GraphError as e:
                logger.warning("intune_user_lookup_failed", user_id=user_id, error=str(e))
                cache[user_id] = None
        user = cache[user_id]
        if user:
            display_name = sanitize_user_string(sanitize_text(user.get("displayName"), 255))
            principal_name = sanitize_user_string(sanitize_text(user.get("userPrincipalName"), 255))

    display_name = display_name or sanitize_user_string(device.get("userDisplayName"))
    principal_name = principal_name or sanitize_user_string(device.get("userPrincipalName"))
    return display_name, principal_name


def _asset_type(operating_system: Optional[str]) -> str:
    os_name = (operating_system or "").lower()
    if "windows" in os_name:
        return "Workstation"
    if "ios" in os_name or "android" in os_name:
        return "Mobile"
    return "Other"


def build_asset_record(device: Dict[str, Any], display_name: Optional[str], principal_name: Optional[str]) -> Dict[str, Any]:
    ram_gb = bytes_to_gb(device.get("physicalMemoryInBytes"))
    disk_gb = bytes_to_gb(device.get("totalStorageSpaceInBytes"))
    free_disk_gb = bytes_to_gb(device.get("freeStorageSpaceInBytes"))
    ram_whole = int(round_half_up(round_half_up(ram_gb, 1))) if ram_gb else None
    compliance = device.get("complianceState")

    notes = "\n".join([
        f"Intune Device ID: {device['id']}",
        f"Azure AD Device ID: {device.get('azureADDeviceId') or 'N/A'}",
        f"Last Sync: {device.get('lastSyncDateTime') or 'N/A'}",
        f"User: {display_name or 'No User'}" + (f" ({principal_name})" if principal_name else ""),
    ])

    specs = AssetSpecs(
        intune_id=device["id"],
        azure_ad_device_id=device.get("azureADDeviceId"),
        os=device.get("operatingSystem"),
        os_version=device.get("osVersion"),
        last_sync=device.get("lastSyncDateTime"),
        enrolled_at=device.get("enrolledDateTime"),
        processor_architecture=device.get("processorArchitecture"),
        cpu_architecture=map_architecture(device.get("processorArchitecture")),
        physical_memory_bytes=device.get("physicalMemoryInBytes"),
        total_storage_bytes=device.get("totalStorageSpaceInBytes"),
        free_storage_bytes=device.get("freeStorageSpaceInBytes"),
        free_disk_gb=round_half_up(free_disk_gb, 1) if free_disk_gb else None,
        user_id=device.get("userId"),
        user_display_name=display_name,
        user_principal_name=principal_name,
        synced_via="intune",
    )

    return {
        "asset_tag": derive_asset_tag(device["id"]),
        "asset_type": _asset_type(device.get("operatingSystem")),
        "brand": device.get("manufacturer") or "Unknown",
        "model": device.get("model") or "Unknown",
        "serial_number": device.get("serialNumber"),
        "hostname": device.get("deviceName"),
        "status": COMPLIANCE_STATUS.get(compliance, "Available"),
        "image_version": device.get("osVersion"),
        "assigned_agent": display_name,
        "logged_in_user": principal_name,
        "antivirus_status": "Active" if compliance == "compliant" else "Inactive",
        "encryption_status": bool(device.get("isEncrypted")),
        # Intune has no reliable CPU model; the architecture is kept in specs instead
        "cpu": None,
        "ram_gb": ram_whole,
        "disk_type": "SSD",
        "disk_space_gb": round_half_up(disk_gb, 1) if disk_gb else None,
        "notes": notes,
        "specs": specs.to_json(),
    }


def sync_device(db: Session, client: GraphClient, raw_device: Dict[str, Any], user_cache: UserCache) -> bool:
    """Reconcile one device. Returns False when the payload is unusable (skipped)."""
    device = validate_device(raw_device)
    if device is None:
        logger.warning("intune_device_invalid", device_name=raw_device.get("deviceName") if isinstance(raw_device, dict) else None)
        return False

    if needs_detail_fetch(device):
        try:
            detail = validate_device(client.get_managed_device(device["id"]))
            if detail:
                device = detail
        except GraphError as e:
            logger.warning("intune_device_detail_failed", device_id=device["id"], error=str(e))

    display_name, principal_name = resolve_user(client, device, user_cache)
    upsert_hardware_asset(db, build_asset_record(device, display_name, principal_name))
    db.commit()
    return True


def sync_managed_devices(db: Session, client: GraphClient, performed_by: Optional[str] = None) -> IntuneSyncResult:
    devices = client.list_managed_devices()
    result = IntuneSyncResult(devices_fetched=len(devices))
    user_cache: UserCache = {}

    for raw_device in devices:
        try:
            if sync_device(db, client, raw_device, user_cache):
                result.devices_synced += 1
            else:
                result.devices_skipped += 1
        except Exception as e:
            db.rollback()
            result.errors += 1
            logger.error(
                "intune_device_sync_failed",
                device_name=raw_device.get("deviceName") if isinstance(raw_device, dict) else None,
                error=str(e),
            )

    logger.info("intune_sync_complete", **result.model_dump())
    create_audit_log(
        db,
        entity_type="intune_sync",
        action="sync",
        performed_by=performed_by,
        details=result.model_dump(),
    )
    return result

