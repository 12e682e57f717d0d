"""
Field normalization for externally sourced inventory data.

Pure functions shared by the Intune sync, the device-agent ingestion path and
the read API. They must agree on the same raw input, so none of them keep
state or depend on locale.
"""
import math
import re
from datetime import datetime, timezone
from typing import Any, Optional, Union

UUID_RE = re.compile(r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$", re.IGNORECASE)
_TAG_RE = re.compile(r"<[^>]*>")
_UNSAFE_CHARS_RE = re.compile(r"[<>\"'&]")

GIB = 1024 ** 3

_ARCHITECTURES = {
    0: None,  # unknown
    1: "x86",
    2: "x64",
    3: "ARM",
    4: "ARM64",
}


def is_uuid(value: Any) -> bool:
    return isinstance(value, str) and bool(UUID_RE.match(value))


def to_number(value: Any) -> Optional[float]:
    """Coerce ints, floats and numeric strings; anything else (bools included) is None."""
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value) if math.isfinite(value) else None
    if isinstance(value, str) and value.strip():
        try:
            n = float(value)
        except ValueError:
            return None
        return n if math.isfinite(n) else None
    return None


def round_half_up(value: float, digits: int = 0) -> float:
    # Python's round() is banker's rounding; inventory figures round .5 up
    factor = 10 ** digits
    return math.floor(value * factor + 0.5) / factor


def bytes_to_gb(value: Any) -> Optional[float]:
    """Bytes -> GiB. Zero, negative and missing figures mean "unknown"."""
    n = to_number(value)
    if not n or n <= 0:
        return None
    return n / GIB


def format_gb(gb: float) -> str:
    rounded = round_half_up(gb, 1)
    if rounded.is_integer():
        return str(int(rounded))
    return f"{rounded:.1f}"


def map_architecture(arch: Union[int, str, None]) -> Optional[str]:
    # Graph returns either the numeric enum or its string name depending on API version
    if arch is None or isinstance(arch, bool):
        return None
    if isinstance(arch, int):
        if arch in _ARCHITECTURES:
            return _ARCHITECTURES[arch]
        return f"Arch({arch})"
    s = str(arch).strip()
    if not s or s.lower() == "unknown":
        return None
    return s


def _format_count(n: float) -> str:
    return str(int(n)) if n.is_integer() else str(n)


def format_cpu(
    raw_cpu: Any = None,
    processor_architecture: Any = None,
    processor_count: Any = None,
    processor_core_count: Any = None,
) -> Optional[str]:
    raw = raw_cpu.strip() if isinstance(raw_cpu, str) else ""
    if raw and raw.lower() != "unknown":
        return raw

    parts = []
    arch = map_architecture(processor_architecture)
    if arch:
        parts.append(arch)
    count = to_number(processor_count)
    if count and count > 0:
        parts.append(f"{_format_count(count)} CPU")
    cores = to_number(processor_core_count)
    if cores and cores > 0:
        parts.append(f"{_format_count(cores)} cores")
    return " · ".join(parts) if parts else None


def sanitize_user_string(value: Any) -> Optional[str]:
    """Trimmed user-facing name, or None for blanks and leaked directory GUIDs."""
    if not isinstance(value, str):
        return None
    trimmed = value.strip()
    if not trimmed or is_uuid(trimmed):
        return None
    return trimmed


def _parse_iso(value: str) -> Optional[datetime]:
    try:
        ts = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    except ValueError:
        return None
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts


def is_awaiting_intune_sync(last_sync_iso: Any, threshold_hours: int = 48, now: Optional[datetime] = None) -> bool:
    if not isinstance(last_sync_iso, str) or not last_sync_iso:
        return False
    ts = _parse_iso(last_sync_iso)
    if ts is None:
        return False
    now = now or datetime.now(timezone.utc)
    return (now - ts).total_seconds() > threshold_hours * 3600


def sanitize_text(value: Any, max_length: int = 255) -> Optional[str]:
    """Strip HTML-like tags and markup characters, cap length, trim. Empty -> None."""
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        value = str(value)
    if not isinstance(value, str):
        return None
    cleaned = _TAG_RE.sub("", value)
    cleaned = _UNSAFE_CHARS_RE.sub("", cleaned)
    cleaned = cleaned[:max_length].strip()
    return cleaned or None


def sanitize_number(value: Any, min_value: float = 0, digits: Optional[int] = None) -> Optional[float]:
    if value is None:
        return None
    n = to_number(value)
    if n is None or n < min_value:
        return None
    if digits is not None:
        n = round_half_up(n, digits)
    return n

