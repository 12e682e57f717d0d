from datetime import date

from opsdesk.models.models import Account, HardwareAsset, NewHire, Seat
from opsdesk.services.normalize import GIB


def add_assets(db):
    db.add(HardwareAsset(
        asset_tag="INTUNE-0A1B2C3D",
        asset_type="Workstation",
        ram_gb=16,
        disk_space_gb=None,
        cpu=None,
        status="In Use",
        specs={
            "synced_via": "intune",
            "last_sync": "2020-01-01T00:00:00Z",
            "processor_architecture": 2,
            "total_storage_bytes": 476.94 * GIB,
        },
    ))
    db.add(HardwareAsset(
        asset_tag="AGENT-PC-01",
        asset_type="Workstation",
        ram_gb=15.88,
        disk_space_gb=512,
        cpu="Intel Core i5-10500",
        status="In Use",
        specs={"synced_via": "device-agent"},
    ))
    db.commit()


def test_hardware_requires_authentication(client):
    assert client.get("/inventory/hardware").status_code == 401


def test_hardware_rows_are_decorated(client, db, viewer_headers):
    add_assets(db)

    resp = client.get("/inventory/hardware", headers=viewer_headers)

    assert resp.status_code == 200
    rows = {r["asset_tag"]: r for r in resp.json()}
    intune = rows["INTUNE-0A1B2C3D"]
    assert intune["ram_display"] == "16 GB"
    assert intune["disk_display"] == "476.9 GB"
    assert intune["cpu_display"] == "x64"
    assert intune["awaiting_sync"] is True
    agent = rows["AGENT-PC-01"]
    assert agent["ram_display"] == "15.9 GB"
    assert agent["disk_display"] == "512 GB"
    assert agent["cpu_display"] == "Intel Core i5-10500"
    assert agent["awaiting_sync"] is False


def test_hardware_filters(client, db, viewer_headers):
    add_assets(db)
    db.query(HardwareAsset).filter(HardwareAsset.asset_tag == "AGENT-PC-01").update({HardwareAsset.status: "For Repair"})
    db.commit()

    resp = client.get("/inventory/hardware?status=For%20Repair", headers=viewer_headers)
    assert [r["asset_tag"] for r in resp.json()] == ["AGENT-PC-01"]


def test_seats_and_new_hires(client, db, viewer_headers):
    account = Account(client_name="Acme", program_name="Customer Support")
    db.add(account)
    db.commit()
    db.add_all([
        Seat(seat_code="A-02", account_id=account.id),
        Seat(seat_code="A-01", account_id=account.id, status="Active", assigned_agent="Ana Reyes"),
        NewHire(employee_name="Ana Reyes", employee_id="E1", hire_date=date(2024, 5, 2), account_id=account.id),
    ])
    db.commit()

    seats = client.get(f"/inventory/seats?account_id={account.id}", headers=viewer_headers).json()
    assert [s["seat_code"] for s in seats] == ["A-01", "A-02"]
    assert seats[1]["status"] == "Buffer"

    hires = client.get("/inventory/new-hires", headers=viewer_headers).json()
    assert hires[0]["employee_name"] == "Ana Reyes"
    assert hires[0]["status"] == "Pending"


def test_parse_barcode_endpoint(client, viewer_headers):
    resp = client.post("/inventory/parse-barcode", json={"text": "Dell Latitude 5440"}, headers=viewer_headers)
    assert resp.status_code == 200
    assert resp.json()["brand"] == "Dell"
    assert resp.json()["model"] == "Latitude 5440"
