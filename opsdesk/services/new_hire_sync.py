"""
Entra ID -> new_hires reconciliation with seat auto-assignment.

Recently created directory users become NewHire rows keyed by employee id.
Each hire whose department maps to an account is given at most one seat of
that account. Seat candidates are loaded once per run into a local list and
removed as they are taken; users are processed sequentially in directory
order, so within a run seats go first-come-first-served and never twice.
Across overlapping runs the seat claim itself is conditional at the store.
"""
import uuid
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Any, Dict, List, Optional

import structlog
from sqlalchemy import or_
from sqlalchemy.orm import Session

from .asset_store import claim_seat, set_hire_account_if_unset, set_hire_seat_if_unset
from .audit import create_audit_log
from .graph_client import GraphClient
from .normalize import sanitize_text, sanitize_user_string
from ..config import settings
from ..models.models import Account, DepartmentAccountMapping, NewHire, Seat
from ..schemas.sync import NewHireSyncResult


logger = structlog.get_logger(__name__)


@dataclass
class SeatCandidate:
    id: uuid.UUID
    seat_code: str
    account_id: Optional[uuid.UUID]
    status: Optional[str]


@dataclass
class AccountRef:
    id: uuid.UUID
    client_name: str
    program_name: str


@dataclass
class MappingRef:
    department_pattern: str
    account_id: uuid.UUID


def _contains_either_way(a: str, b: str) -> bool:
    return bool(a) and bool(b) and (a in b or b in a)


def match_account(
    department: Optional[str],
    accounts: List[AccountRef],
    mappings: Optional[List[MappingRef]] = None,
) -> Optional[uuid.UUID]:
    """
    Resolve a department string to an account id.

    Explicit mappings win (pattern contained in the department). Otherwise the
    first account whose client or program name contains, or is contained in,
    the department, case-insensitively.
    """
    dept = (department or "").strip().lower()
    if not dept:
        return None

    for mapping in mappings or []:
        pattern = (mapping.department_pattern or "").strip().lower()
        if pattern and pattern in dept:
            return mapping.account_id

    for account in accounts:
        for name in (account.client_name, account.program_name):
            if _contains_either_way(dept, (name or "").strip().lower()):
                return account.id
    return None


def pick_seat(candidates: List[SeatCandidate], account_id: uuid.UUID) -> Optional[SeatCandidate]:
    """First Buffer seat of the account, else its first unassigned seat."""
    fallback = None
    for seat in candidates:
        if seat.account_id != account_id:
            continue
        if seat.status == "Buffer":
            return seat
        if fallback is None:
            fallback = seat
    return fallback


def load_seat_candidates(db: Session) -> List[SeatCandidate]:
    rows = (
        db.query(Seat)
        .filter(or_(Seat.status == "Buffer", Seat.assigned_agent.is_(None)))
        .order_by(Seat.seat_code)
        .all()
    )
    return [SeatCandidate(id=s.id, seat_code=s.seat_code, account_id=s.account_id, status=s.status) for s in rows]


def load_accounts(db: Session) -> List[AccountRef]:
    rows = db.query(Account).order_by(Account.created_at, Account.client_name).all()
    return [AccountRef(id=a.id, client_name=a.client_name, program_name=a.program_name) for a in rows]


def load_mappings(db: Session) -> List[MappingRef]:
    rows = db.query(DepartmentAccountMapping).order_by(DepartmentAccountMapping.created_at).all()
    return [MappingRef(department_pattern=m.department_pattern, account_id=m.account_id) for m in rows]


def assign_seat(db: Session, hire_id: uuid.UUID, hire_name: str, account_id: uuid.UUID, candidates: List[SeatCandidate]) -> Optional[SeatCandidate]:
    """Claim a seat of `account_id` for the hire, consuming it from `candidates`."""
    while True:
        seat = pick_seat(candidates, account_id)
        if seat is None:
            return None
        candidates.remove(seat)
        if claim_seat(db, seat.id, hire_name):
            break
        # Taken by an overlapping run since the candidates were loaded
        logger.warning("seat_claim_lost", seat_code=seat.seat_code, employee_name=hire_name)

    if not set_hire_seat_if_unset(db, hire_id, seat.id):
        logger.warning(
            "seat_claimed_without_hire_link",
            seat_code=seat.seat_code,
            employee_name=hire_name,
        )
    return seat


def _hire_date(created: Any) -> date:
    if isinstance(created, str) and created:
        try:
            return date.fromisoformat(created.split("T")[0])
        except ValueError:
            pass
    return datetime.now(timezone.utc).date()


def _notes(user: Dict[str, Any], upn: Optional[str]) -> str:
    department = sanitize_text(user.get("department"), 100)
    job_title = sanitize_text(user.get("jobTitle"), 100)
    lines = [
        f"Department: {department}" if department else None,
        f"Job Title: {job_title}" if job_title else None,
        f"UPN: {upn}" if upn else None,
        f"Entra ID: {sanitize_text(user.get('id'), 100)}",
    ]
    return "\n".join(line for line in lines if line)


def sync_user(
    db: Session,
    user: Dict[str, Any],
    accounts: List[AccountRef],
    mappings: List[MappingRef],
    candidates: List[SeatCandidate],
    result: NewHireSyncResult,
) -> None:
    employee_name = sanitize_user_string(sanitize_text(user.get("displayName"), 255))
    upn = sanitize_text(user.get("userPrincipalName"), 255)
    if not employee_name or user.get("accountEnabled") is False or (upn and "#EXT#" in upn.upper()):
        result.skipped += 1
        return

    employee_id = sanitize_text(user.get("employeeId"), 100) or sanitize_text(user.get("userPrincipalName"), 100)
    if not employee_id:
        result.skipped += 1
        return

    notes = _notes(user, upn)
    matched_account_id = match_account(user.get("department"), accounts, mappings)
    existing = db.query(NewHire).filter(NewHire.employee_id == employee_id).first()

    if existing is None:
        hire = NewHire(
            employee_name=employee_name,
            employee_id=employee_id,
            hire_date=_hire_date(user.get("createdDateTime")),
            status="Pending",
            account_id=matched_account_id,
            notes=notes,
        )
        db.add(hire)
        db.flush()
        hire_id, account_id, seat_id = hire.id, matched_account_id, None
        result.created += 1
    else:
        existing.employee_name = employee_name
        existing.notes = notes
        existing.updated_at = datetime.now(timezone.utc)
        db.flush()
        account_id = existing.account_id
        if account_id is None and matched_account_id is not None:
            if set_hire_account_if_unset(db, existing.id, matched_account_id):
                account_id = matched_account_id
        hire_id, seat_id = existing.id, existing.assigned_seat_id
        result.updated += 1

    if seat_id is None and account_id is not None:
        seat = assign_seat(db, hire_id, employee_name, account_id, candidates)
        if seat is not None:
            result.seats_assigned += 1
            logger.info("seat_assigned", seat_code=seat.seat_code, employee_name=employee_name)

    db.commit()


def sync_new_hires(db: Session, client: GraphClient, performed_by: Optional[str] = None, days: Optional[int] = None) -> NewHireSyncResult:
    users = client.list_recent_users(days or settings.new_hire_window_days)
    result = NewHireSyncResult(users_fetched=len(users))

    # Run-local working sets; never shared between invocations
    accounts = load_accounts(db)
    mappings = load_mappings(db)
    candidates = load_seat_candidates(db)

    for user in users:
        try:
            sync_user(db, user, accounts, mappings, candidates, result)
        except Exception as e:
            db.rollback()
            result.errors += 1
            logger.error("new_hire_sync_user_failed", display_name=user.get("displayName"), error=str(e))

    logger.info("new_hire_sync_complete", **result.model_dump())
    create_audit_log(
        db,
        entity_type="new_hire_sync",
        action="sync",
        performed_by=performed_by,
        details=result.model_dump(),
    )
    return result

