from datetime import date, datetime, timedelta

from conftest import FakeGraphClient
from opsdesk.models.models import Account, AuditLog, DepartmentAccountMapping, NewHire, Seat
from opsdesk.services import new_hire_sync
from opsdesk.services.new_hire_sync import (
    AccountRef,
    MappingRef,
    SeatCandidate,
    match_account,
    pick_seat,
    sync_new_hires,
)


def make_account(db, client_name, program_name, created_offset=0):
    account = Account(
        client_name=client_name,
        program_name=program_name,
        created_at=datetime(2024, 1, 1) + timedelta(minutes=created_offset),
    )
    db.add(account)
    db.commit()
    return account


def make_seat(db, code, account, status="Buffer", agent=None):
    seat = Seat(seat_code=code, account_id=account.id if account else None, status=status, assigned_agent=agent)
    db.add(seat)
    db.commit()
    return seat


def entra_user(name, employee_id=None, department=None, **extra):
    user = {
        "id": f"id-{name}",
        "displayName": name,
        "employeeId": employee_id,
        "userPrincipalName": f"{name.lower().replace(' ', '.')}@example.com",
        "department": department,
        "jobTitle": "Agent",
        "createdDateTime": "2024-05-02T08:30:00Z",
        "accountEnabled": True,
    }
    user.update(extra)
    return user


def test_match_account_is_case_insensitive_substring_first_match():
    a1 = AccountRef(id="a1", client_name="Acme Telecom", program_name="Customer Support")
    a2 = AccountRef(id="a2", client_name="Globex", program_name="Support")

    assert match_account("Customer Support Team", [a1, a2]) == "a1"
    assert match_account("customer support", [a1, a2]) == "a1"
    assert match_account("GLOBEX billing", [a1, a2]) == "a2"
    assert match_account("unrelated", [a1, a2]) is None
    assert match_account("", [a1, a2]) is None
    assert match_account(None, [a1, a2]) is None


def test_department_contained_in_account_name_matches():
    account = AccountRef(id="a1", client_name="Acme", program_name="Technical Support Tier 2")
    assert match_account("Technical Support", [account]) == "a1"


def test_mappings_take_precedence_over_name_matching():
    account = AccountRef(id="a1", client_name="Acme", program_name="Customer Support")
    mapping = MappingRef(department_pattern="Customer Support", account_id="mapped")
    assert match_account("Customer Support Team", [account], [mapping]) == "mapped"


def test_pick_seat_prefers_buffer():
    candidates = [
        SeatCandidate(id="s1", seat_code="A-01", account_id="a1", status="Down"),
        SeatCandidate(id="s2", seat_code="A-02", account_id="a1", status="Buffer"),
        SeatCandidate(id="s3", seat_code="B-01", account_id="a2", status="Buffer"),
    ]
    assert pick_seat(candidates, "a1").id == "s2"
    assert pick_seat(candidates[:1], "a1").id == "s1"
    assert pick_seat(candidates, "a3") is None


def test_one_seat_two_hires_no_double_booking(db):
    account = make_account(db, "Acme", "Customer Support")
    seat = make_seat(db, "A-01", account)
    client = FakeGraphClient(recent_users=[
        entra_user("Ana Reyes", "E100", "Customer Support Team"),
        entra_user("Ben Cruz", "E101", "Customer Support Team"),
    ])

    result = sync_new_hires(db, client)

    db.expire_all()
    hires = {h.employee_name: h for h in db.query(NewHire).all()}
    assert result.created == 2
    assert result.seats_assigned == 1
    assert hires["Ana Reyes"].assigned_seat_id == seat.id
    assert hires["Ben Cruz"].assigned_seat_id is None
    seat = db.query(Seat).one()
    assert seat.assigned_agent == "Ana Reyes"
    assert seat.status == "Active"


def test_unmatched_department_creates_hire_without_account(db):
    make_account(db, "Acme", "Customer Support")
    client = FakeGraphClient(recent_users=[entra_user("Cara Lim", "E200", "unrelated")])

    sync_new_hires(db, client)

    hire = db.query(NewHire).one()
    assert hire.account_id is None
    assert hire.assigned_seat_id is None
    assert hire.status == "Pending"
    assert hire.hire_date == date(2024, 5, 2)
    assert "Department: unrelated" in hire.notes
    assert "Entra ID: id-Cara Lim" in hire.notes


def test_skips_disabled_guest_and_guid_named_users(db):
    client = FakeGraphClient(recent_users=[
        entra_user("Disabled User", "E1", accountEnabled=False),
        entra_user("Guest User", "E2", userPrincipalName="guest_example.com#EXT#@tenant.onmicrosoft.com"),
        entra_user("3fa85f64-5717-4562-b3fc-2c963f66afa6", "E3"),
        entra_user("No Key", None, userPrincipalName=None),
        entra_user("Real Person", None),
    ])

    result = sync_new_hires(db, client)

    assert result.users_fetched == 5
    assert result.skipped == 4
    assert result.created == 1
    hire = db.query(NewHire).one()
    assert hire.employee_id == "real.person@example.com"


def test_rerun_updates_existing_and_keeps_account(db):
    first = make_account(db, "Acme", "Customer Support", created_offset=0)
    second = make_account(db, "Globex", "Sales", created_offset=1)
    client = FakeGraphClient(recent_users=[entra_user("Dana Sy", "E300", "Customer Support")])
    sync_new_hires(db, client)

    client.recent_users = [entra_user("Dana Sy-Reyes", "E300", "Sales")]
    result = sync_new_hires(db, client)

    db.expire_all()
    hire = db.query(NewHire).one()
    assert result.updated == 1
    assert result.created == 0
    assert hire.employee_name == "Dana Sy-Reyes"
    assert hire.account_id == first.id
    assert hire.account_id != second.id


def test_existing_hire_without_account_gets_account_and_seat(db):
    account = make_account(db, "Acme", "Customer Support")
    seat = make_seat(db, "A-01", account)
    db.add(NewHire(employee_name="Eli Tan", employee_id="E400", hire_date=date(2024, 5, 1)))
    db.commit()

    client = FakeGraphClient(recent_users=[entra_user("Eli Tan", "E400", "Customer Support")])
    result = sync_new_hires(db, client)

    db.expire_all()
    hire = db.query(NewHire).one()
    assert result.updated == 1
    assert result.seats_assigned == 1
    assert hire.account_id == account.id
    assert hire.assigned_seat_id == seat.id


def test_hire_with_seat_is_not_reassigned(db):
    account = make_account(db, "Acme", "Customer Support")
    make_seat(db, "A-01", account, status="Active", agent="Fay Uy")
    spare = make_seat(db, "A-02", account)
    client = FakeGraphClient(recent_users=[entra_user("Fay Uy", "E500", "Customer Support")])

    sync_new_hires(db, client)
    sync_new_hires(db, client)

    db.expire_all()
    hire = db.query(NewHire).one()
    assert hire.assigned_seat_id == spare.id
    assert db.query(Seat).filter(Seat.assigned_agent == "Fay Uy").count() == 2


def test_seat_taken_by_another_run_is_not_claimed(db, monkeypatch):
    account = make_account(db, "Acme", "Customer Support")
    first = make_seat(db, "A-01", account)
    second = make_seat(db, "A-02", account)
    client = FakeGraphClient(recent_users=[entra_user("Gus Ong", "E600", "Customer Support")])

    real_load = new_hire_sync.load_seat_candidates

    def load_then_race(session):
        candidates = real_load(session)
        # An overlapping run claims A-01 after this run loaded its candidates
        session.query(Seat).filter(Seat.id == first.id).update({Seat.status: "Active", Seat.assigned_agent: "Other Run"})
        session.commit()
        return candidates

    monkeypatch.setattr(new_hire_sync, "load_seat_candidates", load_then_race)
    result = sync_new_hires(db, client)

    db.expire_all()
    hire = db.query(NewHire).one()
    assert result.seats_assigned == 1
    assert hire.assigned_seat_id == second.id
    assert db.query(Seat).filter(Seat.id == first.id).one().assigned_agent == "Other Run"


def test_department_mapping_is_used(db):
    acme = make_account(db, "Acme", "Customer Support", created_offset=0)
    globex = make_account(db, "Globex", "Retention", created_offset=1)
    db.add(DepartmentAccountMapping(department_pattern="CS-West", account_id=globex.id))
    db.commit()
    client = FakeGraphClient(recent_users=[entra_user("Hal Po", "E700", "CS-West Customer Support")])

    sync_new_hires(db, client)

    hire = db.query(NewHire).one()
    assert hire.account_id == globex.id
    assert hire.account_id != acme.id


def test_per_user_failure_is_counted(db):
    make_account(db, "Acme", "Customer Support")
    client = FakeGraphClient(recent_users=[
        entra_user("Ivy Go", "E800", "Customer Support"),
        {"displayName": "Broken", "employeeId": "E801", "createdDateTime": "2024-05-02T00:00:00Z", "department": object()},
        entra_user("Jon Li", "E802", "Customer Support"),
    ])

    result = sync_new_hires(db, client)

    assert result.errors == 1
    assert result.created == 2
    entry = db.query(AuditLog).filter(AuditLog.entity_type == "new_hire_sync").one()
    assert entry.details["errors"] == 1
    assert entry.details["created"] == 2
