"""
Best-effort extraction of asset fields from scanned barcode / QR text.

Accepts JSON objects, delimited key-value text ("SN:123;MAC=AA-BB-...") and
plain labels. Nothing here touches the database; the result pre-fills the
asset form.
"""
import json
import re
from typing import Dict, Optional, Tuple

BRAND_PATTERNS = [
    (re.compile(r"\b(DELL)\b", re.IGNORECASE), "Dell"),
    (re.compile(r"\b(HP|HPE|Hewlett[\s-]?Packard)\b", re.IGNORECASE), "HP"),
    (re.compile(r"\b(LENOVO)\b", re.IGNORECASE), "Lenovo"),
    (re.compile(r"\b(ASUS)\b", re.IGNORECASE), "Asus"),
    (re.compile(r"\b(ACER)\b", re.IGNORECASE), "Acer"),
    (re.compile(r"\b(CISCO)\b", re.IGNORECASE), "Cisco"),
    (re.compile(r"\b(APPLE)\b", re.IGNORECASE), "Apple"),
    (re.compile(r"\b(SAMSUNG)\b", re.IGNORECASE), "Samsung"),
    (re.compile(r"\b(LOGITECH)\b", re.IGNORECASE), "Logitech"),
    (re.compile(r"\b(JABRA)\b", re.IGNORECASE), "Jabra"),
    (re.compile(r"\b(PLANTRONICS|POLY)\b", re.IGNORECASE), "Poly"),
    (re.compile(r"\b(MICROSOFT)\b", re.IGNORECASE), "Microsoft"),
    (re.compile(r"\b(ARUBA)\b", re.IGNORECASE), "Aruba"),
    (re.compile(r"\b(UBIQUITI|UNIFI)\b", re.IGNORECASE), "Ubiquiti"),
    (re.compile(r"\b(NETGEAR)\b", re.IGNORECASE), "Netgear"),
    (re.compile(r"\b(TP[-\s]?LINK)\b", re.IGNORECASE), "TP-Link"),
    (re.compile(r"\b(RUCKUS)\b", re.IGNORECASE), "Ruckus"),
    (re.compile(r"\b(MERAKI)\b", re.IGNORECASE), "Meraki"),
]

MAC_PATTERNS = [
    re.compile(r"([0-9A-Fa-f]{2}[:-]){5}([0-9A-Fa-f]{2})"),  # AA:BB:CC:DD:EE:FF
    re.compile(r"([0-9A-Fa-f]{4}\.){2}[0-9A-Fa-f]{4}"),  # AABB.CCDD.EEFF
    re.compile(r"[0-9A-Fa-f]{12}"),
]

# First three octets of the MAC
OUI_BRANDS = {
    "001E4F": "Dell",
    "0050B6": "Dell",
    "001DD8": "Dell",
    "001125": "HP",
    "3C4A92": "HP",
    "001CC4": "HP",
    "F0DEF1": "Lenovo",
    "001E37": "Lenovo",
    "6C5C14": "Cisco",
    "000C29": "VMware",
}

JSON_FIELDS = {
    "asset_tag": "asset_tag",
    "assetTag": "asset_tag",
    "tag": "asset_tag",
    "asset": "asset_tag",
    "brand": "brand",
    "manufacturer": "brand",
    "make": "brand",
    "model": "model",
    "modelNumber": "model",
    "model_number": "model",
    "serial": "serial_number",
    "serialNumber": "serial_number",
    "serial_number": "serial_number",
    "sn": "serial_number",
    "mac": "mac_address",
    "macAddress": "mac_address",
    "mac_address": "mac_address",
    "status": "status",
    "type": "asset_type",
    "assetType": "asset_type",
    "asset_type": "asset_type",
    "hostname": "hostname",
    "host": "hostname",
}

KEY_VALUE_FIELDS = {
    "sn": "serial_number",
    "serial": "serial_number",
    "s": "serial_number",
    "mac": "mac_address",
    "m": "mac_address",
    "brand": "brand",
    "b": "brand",
    "model": "model",
    "mod": "model",
    "tag": "asset_tag",
    "asset": "asset_tag",
    "a": "asset_tag",
    "status": "status",
    "st": "status",
    "type": "asset_type",
    "t": "asset_type",
    "host": "hostname",
    "h": "hostname",
}

_KV_SPLIT_RE = re.compile(r"[;|\n]+")
_MODEL_TRIM_RE = re.compile(r"^[\s,\-:]+|[\s,\-:]+$")
_SERVICE_TAG_RE = re.compile(r"^[A-Z0-9]{7}$", re.IGNORECASE)
_LONG_SERIAL_RE = re.compile(r"^[A-Z0-9]{10,20}$", re.IGNORECASE)
_ASSET_TAG_RE = re.compile(r"^[A-Z]{2,5}[-_][A-Z0-9]+$", re.IGNORECASE)
_MAC_SEPARATORS_RE = re.compile(r"[.:-]")


def detect_brand(text: str) -> Optional[Tuple[str, str]]:
    """(brand, matched text) for the first known brand in `text`."""
    for pattern, brand in BRAND_PATTERNS:
        m = pattern.search(text)
        if m:
            return brand, m.group(0)
    return None


def extract_model(text: str, brand_match: str) -> Optional[str]:
    remainder = re.sub(rf"\b{re.escape(brand_match)}\b", "", text, count=1, flags=re.IGNORECASE).strip()
    return _MODEL_TRIM_RE.sub("", remainder).strip() or None


def extract_mac_address(text: str) -> Optional[str]:
    for pattern in MAC_PATTERNS:
        m = pattern.search(text)
        if m:
            mac = _MAC_SEPARATORS_RE.sub("", m.group(0).upper())
            if len(mac) == 12:
                return ":".join(mac[i:i + 2] for i in range(0, 12, 2))
    return None


def parse_json_format(text: str) -> Optional[Dict[str, str]]:
    try:
        data = json.loads(text)
    except ValueError:
        return None
    if not isinstance(data, dict):
        return None

    result = {}
    for json_key, field in JSON_FIELDS.items():
        if data.get(json_key) is not None:
            result[field] = str(data[json_key])
    return result or None


def parse_key_value_format(text: str) -> Optional[Dict[str, str]]:
    result = {}
    for part in _KV_SPLIT_RE.split(text):
        colon = part.find(":")
        equals = part.find("=")
        sep = colon if colon >= 0 and (equals < 0 or colon < equals) else equals
        if sep <= 0:
            continue
        field = KEY_VALUE_FIELDS.get(part[:sep].strip().lower())
        value = part[sep + 1:].strip()
        if field and value:
            result[field] = value
    return result or None


def parse_plain_text(text: str) -> Dict[str, str]:
    result = {}
    clean = text.strip()

    mac = extract_mac_address(clean)
    if mac:
        result["mac_address"] = mac
        oui_brand = OUI_BRANDS.get(mac.replace(":", "")[:6])
        if oui_brand:
            result["brand"] = oui_brand

    detected = detect_brand(clean)
    if detected:
        brand, matched = detected
        result["brand"] = brand
        model = extract_model(clean, matched)
        if model:
            result["model"] = model

    if _SERVICE_TAG_RE.match(clean):
        result["serial_number"] = clean.upper()
        result.setdefault("brand", "Dell")
    elif _LONG_SERIAL_RE.match(clean):
        result["serial_number"] = clean.upper()
    elif _ASSET_TAG_RE.match(clean):
        result["asset_tag"] = clean.upper()
    elif 5 <= len(clean) <= 30:
        result.setdefault("serial_number", clean)

    return result


def parse_barcode(scanned_text: Optional[str]) -> Dict[str, str]:
    if not scanned_text or not scanned_text.strip():
        return {}
    text = scanned_text.strip()

    if text.startswith("{"):
        parsed = parse_json_format(text)
        if parsed:
            return parsed

    if ":" in text or "=" in text:
        parsed = parse_key_value_format(text)
        if parsed:
            # Key-value fields win over anything guessed from the raw text
            return {**parse_plain_text(text), **parsed}

    return parse_plain_text(text)


def is_valid_mac_address(mac: Optional[str]) -> bool:
    if not mac:
        return False
    return bool(re.fullmatch(r"[0-9A-Fa-f]{12}", re.sub(r"[:-]", "", mac)))


def format_mac_address(mac: Optional[str]) -> str:
    if not mac:
        return ""
    normalized = _MAC_SEPARATORS_RE.sub("", mac).upper()
    if len(normalized) != 12:
        return mac
    return ":".join(normalized[i:i + 2] for i in range(0, 12, 2))
