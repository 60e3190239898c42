from __future__ import annotations
from typing import Any, Dict, Optional
from pathlib import Path
import ipaddress
import logging
import os

import maxminddb

from pcf.errors import UpstreamLookupFailure

logger = logging.getLogger(__name__)

# Lazy-initialized reader
_COUNTRY_READER = None
_READER_INITIALIZED = False


def _candidate_data_dirs() -> list[Path]:
    dirs: list[Path] = []
    # .../backend/pcf/services/geoip.py -> repo root is parents[3]
    repo_root = Path(__file__).resolve().parents[3]
    dirs.append(repo_root / "data")
    dirs.append(repo_root / "backend" / "data")
    return dirs


def _find_database() -> Optional[str]:
    for var in ("GEOIP2_COUNTRY_DB", "GEOIP2_CITY_DB"):
        path = os.getenv(var)
        if path and Path(path).exists():
            return path
    for d in _candidate_data_dirs():
        for name in ("GeoLite2-Country.mmdb", "GeoLite2-City.mmdb"):
            p = d / name
            if p.exists():
                return str(p)
    return None


def init_geoip_reader() -> None:
    global _COUNTRY_READER, _READER_INITIALIZED
    if _READER_INITIALIZED:
        return
    _READER_INITIALIZED = True
    path = _find_database()
    if not path:
        logger.info("No GeoLite2 database found; login countries will be null")
        return
    try:
        _COUNTRY_READER = maxminddb.open_database(path)
        logger.info(f"GeoIP database loaded from {path}")
    except (OSError, maxminddb.InvalidDatabaseError) as e:
        logger.warning(f"Failed to open GeoIP database {path}: {e}")
        _COUNTRY_READER = None


def reset_geoip_reader() -> None:
    global _COUNTRY_READER, _READER_INITIALIZED
    if _COUNTRY_READER is not None:
        _COUNTRY_READER.close()
    _COUNTRY_READER = None
    _READER_INITIALIZED = False


def is_private(ip: str) -> bool:
    try:
        addr = ipaddress.ip_address(ip)
    except ValueError:
        return False
    return addr.is_private or addr.is_loopback or addr.is_link_local


def _country_iso(rec: Dict[str, Any]) -> Optional[str]:
    country_val = rec.get("country") or rec.get("registered_country")
    if isinstance(country_val, dict):
        iso_val = country_val.get("iso_code")
        if isinstance(iso_val, str):
            return iso_val
    return None


def lookup_country(ip: Optional[str]) -> Optional[str]:
    """
    ISO country code for an IP, or None when the IP is missing, private, or unknown
    to the database. Reader errors raise UpstreamLookupFailure.
    """
    if not ip:
        return None
    try:
        ipaddress.ip_address(ip)
    except ValueError:
        return None
    if is_private(ip):
        return None
    init_geoip_reader()
    if _COUNTRY_READER is None:
        return None
    try:
        raw = _COUNTRY_READER.get(ip)
    except (ValueError, maxminddb.InvalidDatabaseError, OSError) as e:
        raise UpstreamLookupFailure(f"GeoIP lookup failed for {ip}: {e}") from e
    rec: Dict[str, Any] = raw if isinstance(raw, dict) else {}
    return _country_iso(rec)
