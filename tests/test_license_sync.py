from conftest import FakeGraphClient
from opsdesk.models.models import SoftwareLicense
from opsdesk.services.license_sync import (
    build_license_record,
    get_friendly_name,
    get_license_type,
    sync_licenses,
)


def sku(part_number, sku_id, enabled=25, consumed=10, **extra):
    data = {
        "skuId": sku_id,
        "skuPartNumber": part_number,
        "capabilityStatus": "Enabled",
        "consumedUnits": consumed,
        "prepaidUnits": {"enabled": enabled, "suspended": 0, "warning": 0},
        "servicePlans": [
            {"servicePlanName": "EXCHANGE_S_STANDARD", "provisioningStatus": "Success"},
            {"servicePlanName": "YAMMER_ENTERPRISE", "provisioningStatus": "Disabled"},
        ],
    }
    data.update(extra)
    return data


def test_friendly_names():
    assert get_friendly_name("SPE_E3") == "Microsoft 365 E3"
    assert get_friendly_name("spb") == "Microsoft 365 Business Premium"
    assert get_friendly_name("SOME_NEW_SKU") == "SOME NEW SKU"


def test_license_types():
    assert get_license_type("ENTERPRISEPACK") == "Volume"
    assert get_license_type("SPE_E5") == "Volume"
    assert get_license_type("O365_BUSINESS_PREMIUM") == "Named"
    assert get_license_type("FLOW_FREE") == "Site"
    assert get_license_type("POWERAPPS_VIRAL") == "Site"
    assert get_license_type("MCOEV") == "Named"
    assert get_license_type(None) == "Named"


def test_build_license_record():
    record = build_license_record(sku("SPE_E3", "sku-1", enabled=10, consumed=12))
    assert record["software_name"] == "Microsoft 365 E3"
    assert record["license_key"] == "sku-1"
    assert record["compliance_status"] == "Non-Compliant"
    assert "Service Plans: EXCHANGE_S_STANDARD" in record["notes"]
    assert "YAMMER_ENTERPRISE" not in record["notes"]


def test_sync_licenses_upserts_by_sku_id(db):
    client = FakeGraphClient(skus=[sku("SPE_E3", "sku-1"), sku("FLOW_FREE", "sku-2", enabled=0, consumed=0)])
    result = sync_licenses(db, client)
    assert result.licenses_synced == 2

    client.skus = [sku("SPE_E3", "sku-1", consumed=24)]
    sync_licenses(db, client)

    db.expire_all()
    rows = {r.license_key: r for r in db.query(SoftwareLicense).all()}
    assert len(rows) == 2
    assert rows["sku-1"].used_seats == 24
    assert rows["sku-2"].compliance_status == "Compliant"


def test_sku_without_id_counts_as_error(db):
    client = FakeGraphClient(skus=[{"skuPartNumber": "BROKEN"}, sku("SPE_E5", "sku-5")])
    result = sync_licenses(db, client)
    assert result.total_skus == 2
    assert result.errors == 1
    assert result.licenses_synced == 1
