from pydantic import BaseModel


class IntuneSyncResult(BaseModel):
    devices_fetched: int = 0
    devices_synced: int = 0
    devices_skipped: int = 0
    errors: int = 0


class NewHireSyncResult(BaseModel):
    users_fetched: int = 0
    created: int = 0
    updated: int = 0
    skipped: int = 0
    errors: int = 0
    seats_assigned: int = 0


class LicenseSyncResult(BaseModel):
    total_skus: int = 0
    licenses_synced: int = 0
    errors: int = 0

