"""
Store primitives for the sync jobs.

Every write here is a single conditional statement so overlapping sync runs
cannot lose or duplicate data: natural-key upserts use the dialect's
INSERT ... ON CONFLICT DO UPDATE, and assignments only apply while the target
column is still unset.
"""
import hashlib
import json
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, Type

from sqlalchemy import or_
from sqlalchemy.orm import Session

from ..db import Base
from ..models.models import HardwareAsset, NewHire, Seat, SoftwareLicense


def _dialect_insert(db: Session):
    dialect = db.get_bind().dialect.name
    if dialect == "postgresql":
        from sqlalchemy.dialects.postgresql import insert
    elif dialect == "sqlite":
        from sqlalchemy.dialects.sqlite import insert
    else:
        raise NotImplementedError(f"Natural-key upsert not supported on {dialect}")
    return insert


def compute_source_hash(values: Dict[str, Any]) -> str:
    canonical_json = json.dumps(values, sort_keys=True, default=str)
    return hashlib.sha256(canonical_json.encode()).hexdigest()


def upsert_by_natural_key(db: Session, model: Type[Base], key: str, values: Dict[str, Any]) -> bool:
    """
    Insert-or-update `values` keyed by the unique column `key`.

    The row is only rewritten when its content hash differs, so repeating a
    sync with unchanged upstream data is a no-op. Returns True when a row was
    inserted or changed. Does not commit.
    """
    insert = _dialect_insert(db)
    source_hash = compute_source_hash(values)
    now = datetime.now(timezone.utc)

    row = dict(values, source_hash=source_hash, updated_at=now)
    stmt = insert(model).values(id=uuid.uuid4(), created_at=now, **row)
    update_cols = {name: stmt.excluded[name] for name in row if name != key}
    stmt = stmt.on_conflict_do_update(
        index_elements=[key],
        set_=update_cols,
        where=or_(model.source_hash.is_(None), model.source_hash != stmt.excluded.source_hash),
    )
    result = db.execute(stmt)
    return result.rowcount > 0


def upsert_hardware_asset(db: Session, values: Dict[str, Any]) -> bool:
    return upsert_by_natural_key(db, HardwareAsset, "asset_tag", values)


def upsert_software_license(db: Session, values: Dict[str, Any]) -> bool:
    return upsert_by_natural_key(db, SoftwareLicense, "license_key", values)


def claim_seat(db: Session, seat_id: uuid.UUID, agent_name: str) -> bool:
    """Mark a seat Active for `agent_name` if it is still Buffer or unassigned."""
    updated = (
        db.query(Seat)
        .filter(Seat.id == seat_id)
        .filter(or_(Seat.status == "Buffer", Seat.assigned_agent.is_(None)))
        .update(
            {
                Seat.assigned_agent: agent_name,
                Seat.status: "Active",
                Seat.updated_at: datetime.now(timezone.utc),
            },
            synchronize_session=False,
        )
    )
    return updated == 1


def set_hire_seat_if_unset(db: Session, hire_id: uuid.UUID, seat_id: uuid.UUID) -> bool:
    updated = (
        db.query(NewHire)
        .filter(NewHire.id == hire_id, NewHire.assigned_seat_id.is_(None))
        .update(
            {NewHire.assigned_seat_id: seat_id, NewHire.updated_at: datetime.now(timezone.utc)},
            synchronize_session=False,
        )
    )
    return updated == 1


def set_hire_account_if_unset(db: Session, hire_id: uuid.UUID, account_id: uuid.UUID) -> bool:
    updated = (
        db.query(NewHire)
        .filter(NewHire.id == hire_id, NewHire.account_id.is_(None))
        .update(
            {NewHire.account_id: account_id, NewHire.updated_at: datetime.now(timezone.utc)},
            synchronize_session=False,
        )
    )
    return updated == 1

