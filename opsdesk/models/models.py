import uuid
from datetime import datetime, date
from typing import Optional

from sqlalchemy import (
    Column,
    String,
    DateTime,
    Date,
    Boolean,
    ForeignKey,
    Table,
    Integer,
    Float,
    JSON,
    UniqueConstraint,
    Text,
    Index,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship, Mapped, mapped_column

from ..db import Base


def uuid_pk() -> Mapped[uuid.UUID]:
    return mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)


# Association table for many-to-many User<->Role
user_roles = Table(
    "user_roles",
    Base.metadata,
    Column("user_id", UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
    Column("role_id", UUID(as_uuid=True), ForeignKey("roles.id", ondelete="CASCADE"), primary_key=True),
    UniqueConstraint("user_id", "role_id", name="uq_user_role"),
)


class Role(Base):
    __tablename__ = "roles"

    id: Mapped[uuid.UUID] = uuid_pk()
    name: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)  # admin|operator|viewer
    description: Mapped[Optional[str]] = mapped_column(String(255))

    users = relationship("User", secondary=user_roles, back_populates="roles")


class User(Base):
    __tablename__ = "users"

    id: Mapped[uuid.UUID] = uuid_pk()
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    display_name: Mapped[Optional[str]] = mapped_column(String(255))
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow)

    roles = relationship("Role", secondary=user_roles, back_populates="users")


class Account(Base):
    """Client program the BPO operates seats for"""
    __tablename__ = "accounts"

    id: Mapped[uuid.UUID] = uuid_pk()
    client_name: Mapped[str] = mapped_column(String(255), nullable=False)
    program_name: Mapped[str] = mapped_column(String(255), nullable=False)
    status: Mapped[Optional[str]] = mapped_column(String(50), default="Active")  # Active|Onboarding|On Hold|Terminated
    total_seats: Mapped[Optional[int]] = mapped_column(Integer)
    notes: Mapped[Optional[str]] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow)
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    seats = relationship("Seat", back_populates="account")


class Seat(Base):
    __tablename__ = "seats"

    id: Mapped[uuid.UUID] = uuid_pk()
    seat_code: Mapped[str] = mapped_column(String(50), unique=True, nullable=False)
    account_id: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True), ForeignKey("accounts.id", ondelete="SET NULL"), index=True)
    status: Mapped[Optional[str]] = mapped_column(String(50), default="Buffer", index=True)  # Active|Buffer|Reserved|Down|Repair
    assigned_agent: Mapped[Optional[str]] = mapped_column(String(255))
    site: Mapped[Optional[str]] = mapped_column(String(100))
    floor: Mapped[Optional[str]] = mapped_column(String(50))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow)
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    account = relationship("Account", back_populates="seats")


class NewHire(Base):
    __tablename__ = "new_hires"

    id: Mapped[uuid.UUID] = uuid_pk()
    employee_name: Mapped[str] = mapped_column(String(255), nullable=False)
    employee_id: Mapped[Optional[str]] = mapped_column(String(100), unique=True, index=True)  # natural key for sync
    hire_date: Mapped[date] = mapped_column(Date, nullable=False)
    account_id: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True), ForeignKey("accounts.id", ondelete="SET NULL"), index=True)
    assigned_seat_id: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True), ForeignKey("seats.id", ondelete="SET NULL"))
    pc_imaged: Mapped[bool] = mapped_column(Boolean, default=False)
    software_installed: Mapped[bool] = mapped_column(Boolean, default=False)
    headset_issued: Mapped[bool] = mapped_column(Boolean, default=False)
    account_access_provisioned: Mapped[bool] = mapped_column(Boolean, default=False)
    status: Mapped[Optional[str]] = mapped_column(String(50), default="Pending")
    notes: Mapped[Optional[str]] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow)
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))


class DepartmentAccountMapping(Base):
    """Operator-maintained department pattern -> account overrides for new-hire sync"""
    __tablename__ = "department_account_mappings"

    id: Mapped[uuid.UUID] = uuid_pk()
    department_pattern: Mapped[str] = mapped_column(String(255), nullable=False)
    account_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow)


class HardwareAsset(Base):
    __tablename__ = "hardware_assets"

    id: Mapped[uuid.UUID] = uuid_pk()
    asset_tag: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)  # upsert conflict target
    asset_type: Mapped[str] = mapped_column(String(50), default="Workstation")
    brand: Mapped[Optional[str]] = mapped_column(String(100))
    model: Mapped[Optional[str]] = mapped_column(String(100))
    serial_number: Mapped[Optional[str]] = mapped_column(String(100), index=True)
    hostname: Mapped[Optional[str]] = mapped_column(String(255))
    cpu: Mapped[Optional[str]] = mapped_column(String(200))
    ram_gb: Mapped[Optional[float]] = mapped_column(Float)
    disk_space_gb: Mapped[Optional[float]] = mapped_column(Float)
    disk_type: Mapped[Optional[str]] = mapped_column(String(50))
    image_version: Mapped[Optional[str]] = mapped_column(String(50))
    status: Mapped[Optional[str]] = mapped_column(String(50), default="Available", index=True)  # In Use|Available|For Repair|Retired
    antivirus_status: Mapped[Optional[str]] = mapped_column(String(50))
    encryption_status: Mapped[Optional[bool]] = mapped_column(Boolean)
    usb_policy_applied: Mapped[Optional[bool]] = mapped_column(Boolean)
    assigned_agent: Mapped[Optional[str]] = mapped_column(String(255))
    logged_in_user: Mapped[Optional[str]] = mapped_column(String(255))
    mac_address: Mapped[Optional[str]] = mapped_column(String(50))
    notes: Mapped[Optional[str]] = mapped_column(Text)
    specs: Mapped[Optional[dict]] = mapped_column(JSON)  # raw source fields, see schemas.assets.AssetSpecs
    source_hash: Mapped[Optional[str]] = mapped_column(String(64))  # skip no-op upserts
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow)
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    __table_args__ = (
        Index('idx_hardware_asset_type_status', 'asset_type', 'status'),
    )


class SoftwareLicense(Base):
    __tablename__ = "software_licenses"

    id: Mapped[uuid.UUID] = uuid_pk()
    software_name: Mapped[str] = mapped_column(String(255), nullable=False)
    vendor: Mapped[Optional[str]] = mapped_column(String(100))
    license_type: Mapped[Optional[str]] = mapped_column(String(50))  # Volume|Named|Site
    license_key: Mapped[Optional[str]] = mapped_column(String(255), unique=True)  # Entra SKU id for synced rows
    total_seats: Mapped[Optional[int]] = mapped_column(Integer)
    used_seats: Mapped[Optional[int]] = mapped_column(Integer)
    compliance_status: Mapped[Optional[str]] = mapped_column(String(50))
    is_client_provided: Mapped[bool] = mapped_column(Boolean, default=False)
    account_id: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True), ForeignKey("accounts.id", ondelete="SET NULL"))
    notes: Mapped[Optional[str]] = mapped_column(Text)
    source_hash: Mapped[Optional[str]] = mapped_column(String(64))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow)
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))


class RegisteredDevice(Base):
    """Unmanaged endpoint enrolled through the device agent"""
    __tablename__ = "registered_devices"

    id: Mapped[uuid.UUID] = uuid_pk()
    device_id: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    hostname: Mapped[Optional[str]] = mapped_column(String(255))
    registration_key: Mapped[str] = mapped_column(String(64), unique=True, nullable=False, index=True)
    status: Mapped[str] = mapped_column(String(20), default="pending", nullable=False)  # pending|approved|rejected|revoked
    approved_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    approved_by: Mapped[Optional[str]] = mapped_column(String(255))
    last_sync_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    sync_count: Mapped[int] = mapped_column(Integer, default=0)
    notes: Mapped[Optional[str]] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow)
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))


class AuditLog(Base):
    """Append-only audit log for sync runs and admin actions"""
    __tablename__ = "audit_logs"

    id: Mapped[uuid.UUID] = uuid_pk()
    entity_type: Mapped[str] = mapped_column(String(50), nullable=False, index=True)  # intune_sync|new_hire_sync|license_sync|registered_device
    entity_id: Mapped[Optional[str]] = mapped_column(String(100), index=True)
    action: Mapped[str] = mapped_column(String(50), nullable=False)  # sync|status_change
    performed_by: Mapped[Optional[str]] = mapped_column(String(255))
    details: Mapped[Optional[dict]] = mapped_column(JSON)
    performed_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow, nullable=False, index=True)
    integrity_hash: Mapped[Optional[str]] = mapped_column(String(64))  # SHA256 hash for integrity verification

    __table_args__ = (
        Index('idx_audit_entity', 'entity_type', 'entity_id'),
    )

