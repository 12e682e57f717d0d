"""
Entra ID subscribed SKUs -> software_licenses.
"""
from typing import Any, Dict, Optional

import structlog
from sqlalchemy.orm import Session

from .asset_store import upsert_software_license
from .audit import create_audit_log
from .graph_client import GraphClient
from ..schemas.sync import LicenseSyncResult


logger = structlog.get_logger(__name__)

MAX_SERVICE_PLANS = 10

SKU_FRIENDLY_NAMES = {
    "O365_BUSINESS_ESSENTIALS": "Microsoft 365 Business Basic",
    "O365_BUSINESS_PREMIUM": "Microsoft 365 Business Standard",
    "ENTERPRISEPACK": "Office 365 E3",
    "ENTERPRISEPREMIUM": "Office 365 E5",
    "DESKLESSPACK": "Office 365 F3",
    "SPE_E3": "Microsoft 365 E3",
    "SPE_E5": "Microsoft 365 E5",
    "SPE_F1": "Microsoft 365 F1",
    "SPB": "Microsoft 365 Business Premium",
    "SMB_BUSINESS": "Microsoft 365 Apps for Business",
    "SMB_BUSINESS_ESSENTIALS": "Microsoft 365 Business Basic",
    "SMB_BUSINESS_PREMIUM": "Microsoft 365 Business Standard",
    "OFFICESUBSCRIPTION": "Microsoft 365 Apps for Enterprise",
    "EXCHANGESTANDARD": "Exchange Online Plan 1",
    "EXCHANGEENTERPRISE": "Exchange Online Plan 2",
    "EMS": "Enterprise Mobility + Security E3",
    "EMSPREMIUM": "Enterprise Mobility + Security E5",
    "ATP_ENTERPRISE": "Microsoft Defender for Office 365 Plan 1",
    "THREAT_INTELLIGENCE": "Microsoft Defender for Office 365 Plan 2",
    "INTUNE_A": "Microsoft Intune Plan 1",
    "IDENTITY_THREAT_PROTECTION": "Microsoft 365 E5 Security",
    "AAD_PREMIUM": "Azure AD Premium P1",
    "AAD_PREMIUM_P2": "Azure AD Premium P2",
    "POWER_BI_STANDARD": "Power BI (free)",
    "POWER_BI_PRO": "Power BI Pro",
    "PROJECTPROFESSIONAL": "Project Plan 3",
    "PROJECTPREMIUM": "Project Plan 5",
    "VISIOCLIENT": "Visio Plan 2",
    "FLOW_FREE": "Power Automate Free",
    "POWERAPPS_VIRAL": "Power Apps Plan 2 Trial",
    "TEAMS_EXPLORATORY": "Microsoft Teams Exploratory",
    "STREAM": "Microsoft Stream",
    "WIN10_PRO_ENT_SUB": "Windows 10/11 Enterprise E3",
    "WIN10_VDA_E5": "Windows 10/11 Enterprise E5",
    "WINDOWS_STORE": "Windows Store for Business",
    "RIGHTSMANAGEMENT": "Azure Information Protection Plan 1",
    "RIGHTSMANAGEMENT_ADHOC": "Rights Management Adhoc",
    "MCOEV": "Microsoft Teams Phone Standard",
    "MCOMEETADV": "Microsoft Teams Audio Conferencing",
    "PHONESYSTEM_VIRTUALUSER": "Microsoft Teams Phone Resource Account",
    "MEETING_ROOM": "Microsoft Teams Rooms Standard",
    "DYN365_ENTERPRISE_SALES": "Dynamics 365 Sales Enterprise",
    "DYN365_ENTERPRISE_CUSTOMER_SERVICE": "Dynamics 365 Customer Service Enterprise",
    "MICROSOFT_BUSINESS_CENTER": "Microsoft Business Center",
    "CCIBOTS_PRIVPREV_VIRAL": "Power Virtual Agents Viral Trial",
    "FORMS_PRO": "Dynamics 365 Customer Voice Trial",
    "CDS_DB_CAPACITY": "Common Data Service Database Capacity",
    "M365_F1_COMM": "Microsoft 365 F1",
}


def get_license_type(sku_part_number: Optional[str]) -> str:
    name = (sku_part_number or "").upper()
    if "ENTERPRISE" in name or "SPE_E" in name:
        return "Volume"
    if "BUSINESS" in name or "SMB" in name:
        return "Named"
    if any(marker in name for marker in ("FREE", "VIRAL", "TRIAL", "EXPLORATORY")):
        return "Site"
    return "Named"


def get_friendly_name(sku_part_number: str) -> str:
    return SKU_FRIENDLY_NAMES.get(sku_part_number.upper(), sku_part_number.replace("_", " "))


def build_license_record(sku: Dict[str, Any]) -> Dict[str, Any]:
    part_number = sku.get("skuPartNumber") or ""
    sku_id = sku.get("skuId")
    if not sku_id:
        raise ValueError(f"SKU {part_number or '?'} has no skuId")

    prepaid = sku.get("prepaidUnits") or {}
    total_seats = prepaid.get("enabled") or 0
    used_seats = sku.get("consumedUnits") or 0
    active_plans = [
        p.get("servicePlanName")
        for p in sku.get("servicePlans") or []
        if p.get("provisioningStatus") == "Success"
    ][:MAX_SERVICE_PLANS]

    notes = [
        f"Entra ID SKU: {part_number}",
        f"Status: {sku.get('capabilityStatus')}",
        f"Suspended: {prepaid.get('suspended') or 0}",
        f"Warning: {prepaid.get('warning') or 0}",
    ]
    if active_plans:
        notes.append(f"Service Plans: {', '.join(active_plans)}")

    return {
        "software_name": get_friendly_name(part_number) or sku_id,
        "vendor": "Microsoft",
        "license_type": get_license_type(part_number),
        "license_key": sku_id,
        "total_seats": total_seats,
        "used_seats": used_seats,
        "compliance_status": "Compliant" if used_seats <= total_seats else "Non-Compliant",
        "is_client_provided": False,
        "notes": "\n".join(notes),
    }


def sync_licenses(db: Session, client: GraphClient, performed_by: Optional[str] = None) -> LicenseSyncResult:
    skus = client.list_subscribed_skus()
    result = LicenseSyncResult(total_skus=len(skus))

    for sku in skus:
        try:
            upsert_software_license(db, build_license_record(sku))
            db.commit()
            result.licenses_synced += 1
        except Exception as e:
            db.rollback()
            result.errors += 1
            logger.error("license_sync_sku_failed", sku=sku.get("skuPartNumber"), error=str(e))

    logger.info("license_sync_complete", **result.model_dump())
    create_audit_log(
        db,
        entity_type="license_sync",
        action="sync",
        performed_by=performed_by,
        details=result.model_dump(),
    )
    return result
