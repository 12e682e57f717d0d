from datetime import datetime, timedelta, timezone

import pytest

from opsdesk.services.normalize import (
    GIB,
    bytes_to_gb,
    format_cpu,
    format_gb,
    is_awaiting_intune_sync,
    map_architecture,
    round_half_up,
    sanitize_number,
    sanitize_text,
    sanitize_user_string,
    to_number,
)


def test_bytes_to_gb():
    assert bytes_to_gb(GIB * 16) == 16
    assert bytes_to_gb(1536) == 1536 / 2 ** 30
    assert bytes_to_gb("17179869184") == 16
    assert bytes_to_gb(0) is None
    assert bytes_to_gb(None) is None
    assert bytes_to_gb(-5) is None
    assert bytes_to_gb("abc") is None


@pytest.mark.parametrize("gb,expected", [
    (16.0, "16"),
    (15.95, "16"),
    (15.94, "15.9"),
    (7.5, "7.5"),
    (0.25, "0.3"),
])
def test_format_gb(gb, expected):
    assert format_gb(gb) == expected


def test_round_half_up_is_not_bankers_rounding():
    assert round_half_up(2.5) == 3
    assert round_half_up(0.125, 2) == 0.13
    assert round_half_up(15.94, 1) == 15.9


def test_sanitize_user_string():
    assert sanitize_user_string("3fa85f64-5717-4562-b3fc-2c963f66afa6") is None
    assert sanitize_user_string("3FA85F64-5717-4562-B3FC-2C963F66AFA6") is None
    assert sanitize_user_string("  Jane Doe  ") == "Jane Doe"
    assert sanitize_user_string("") is None
    assert sanitize_user_string("   ") is None
    assert sanitize_user_string(42) is None


@pytest.mark.parametrize("arch,expected", [
    (0, None),
    (1, "x86"),
    (2, "x64"),
    (3, "ARM"),
    (4, "ARM64"),
    (99, "Arch(99)"),
    ("Unknown", None),
    ("", None),
    ("arm64", "arm64"),
    (None, None),
])
def test_map_architecture(arch, expected):
    assert map_architecture(arch) == expected


def test_format_cpu_prefers_raw_model():
    assert format_cpu("Intel Core i5-1135G7", 2, 1, 4) == "Intel Core i5-1135G7"


def test_format_cpu_builds_from_parts():
    assert format_cpu("unknown", 2, 1, 8) == "x64 · 1 CPU · 8 cores"
    assert format_cpu(None, 0, None, None) is None
    assert format_cpu(None, None, "2", 0) == "2 CPU"


def test_is_awaiting_intune_sync():
    now = datetime(2024, 5, 10, 12, 0, tzinfo=timezone.utc)
    stale = (now - timedelta(hours=49)).isoformat().replace("+00:00", "Z")
    fresh = (now - timedelta(hours=2)).isoformat()
    assert is_awaiting_intune_sync(stale, now=now) is True
    assert is_awaiting_intune_sync(fresh, now=now) is False
    assert is_awaiting_intune_sync(fresh, threshold_hours=1, now=now) is True
    assert is_awaiting_intune_sync("not a date", now=now) is False
    assert is_awaiting_intune_sync(None, now=now) is False


def test_to_number_rejects_bools_and_non_finite():
    assert to_number(True) is None
    assert to_number(float("nan")) is None
    assert to_number("inf") is None
    assert to_number(" 12.5 ") == 12.5


def test_sanitize_text():
    assert sanitize_text("<script>alert(1)</script>Laptop") == "alert(1)Laptop"
    assert sanitize_text("  DESKTOP-01  ") == "DESKTOP-01"
    assert sanitize_text("x" * 300, 100) == "x" * 100
    assert sanitize_text("<b></b>") is None
    assert sanitize_text(123) == "123"
    assert sanitize_text(None) is None
    assert sanitize_text(["a"]) is None


def test_sanitize_number():
    assert sanitize_number("16.456", digits=2) == 16.46
    assert sanitize_number(-1) is None
    assert sanitize_number("nan") is None
    assert sanitize_number("lots") is None
    assert sanitize_number(512) == 512
