import uuid
from datetime import datetime
from typing import List, Optional, Union

from pydantic import BaseModel, ConfigDict


class AssetSpecs(BaseModel):
    """
    Raw source fields kept on HardwareAsset.specs for traceability.

    Known keys are typed; unknown upstream fields are preserved as extras so
    new Graph/agent fields survive without a schema change.
    """
    model_config = ConfigDict(extra="allow")

    # Intune
    intune_id: Optional[str] = None
    azure_ad_device_id: Optional[str] = None
    os: Optional[str] = None
    os_version: Optional[str] = None
    last_sync: Optional[str] = None
    enrolled_at: Optional[str] = None
    processor_architecture: Optional[Union[int, str]] = None
    cpu_architecture: Optional[str] = None
    physical_memory_bytes: Optional[float] = None
    total_storage_bytes: Optional[float] = None
    free_storage_bytes: Optional[float] = None
    free_disk_gb: Optional[float] = None
    user_id: Optional[str] = None
    user_display_name: Optional[str] = None
    user_principal_name: Optional[str] = None

    # Device agent
    os_name: Optional[str] = None
    os_build: Optional[str] = None
    ip_address: Optional[str] = None
    domain: Optional[str] = None
    processor_count: Optional[int] = None
    processor_core_count: Optional[int] = None
    installed_software: Optional[List[str]] = None
    last_boot_time: Optional[str] = None
    last_agent_sync: Optional[str] = None

    synced_via: Optional[str] = None  # intune|device-agent

    def to_json(self) -> dict:
        return self.model_dump(exclude_none=True)


class HardwareAssetResponse(BaseModel):
    id: uuid.UUID
    asset_tag: str
    asset_type: str
    brand: Optional[str] = None
    model: Optional[str] = None
    serial_number: Optional[str] = None
    hostname: Optional[str] = None
    cpu: Optional[str] = None
    ram_gb: Optional[float] = None
    disk_space_gb: Optional[float] = None
    disk_type: Optional[str] = None
    status: Optional[str] = None
    antivirus_status: Optional[str] = None
    encryption_status: Optional[bool] = None
    assigned_agent: Optional[str] = None
    logged_in_user: Optional[str] = None
    updated_at: Optional[datetime] = None

    # Normalized for display
    ram_display: Optional[str] = None
    disk_display: Optional[str] = None
    cpu_display: Optional[str] = None
    awaiting_sync: bool = False

    class Config:
        from_attributes = True

