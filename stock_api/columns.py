"""
Column detection for the allocation sheet.

Header names are not under our control and drift between deployments
("Frame No.", "FRAME #", "Colour", ...). Each semantic field therefore has a
fixed list of accepted header spellings, compared after lower-casing and
removing whitespace. The first header (in sheet order) that matches wins.

Detection never fails: a field with no matching header maps to None and the
caller reports it under ``missingDetected`` so the candidate lists can be
extended without an outage.
"""
from __future__ import annotations

import re
from typing import Any, Dict, List, Mapping, Optional

ColumnMap = Dict[str, Optional[str]]

# field -> accepted normalized header names
HEADER_CANDIDATES: Dict[str, List[str]] = {
    "frameNo": ["framnumber", "frame", "framenumber", "frameno", "frameno.", "frame#"],
    "type": ["type", "mc/sc", "mcsc", "modelcategory", "vehicle", "vehicletype", "vechicle"],
    "model": ["model", "modelname", "modelnames"],
    "variant": ["variant", "variantname", "modelvariant"],
    "color": ["color", "colour"],
    "location": ["location", "branch"],
    "bookingDate": ["bookingdate", "booking"],
    "executive": ["salesexecutivename", "salesexecutive", "executivename", "executive", "exe.name", "exename"],
}

# Fields the stock view cannot do without; reported when undetected.
REQUIRED_FIELDS = ["frameNo", "model", "variant", "color", "location", "executive"]

_WS_RE = re.compile(r"\s+")


def normalize_header(name: Any) -> str:
    return _WS_RE.sub("", str(name).lower())


def pick_header(keys, candidates) -> Optional[str]:
    for k in keys:
        if normalize_header(k) in candidates:
            return k
    return None


def resolve(sample_row: Optional[Mapping[str, Any]]) -> ColumnMap:
    keys = list((sample_row or {}).keys())
    return {field: pick_header(keys, cands) for field, cands in HEADER_CANDIDATES.items()}


def missing_fields(column_map: ColumnMap) -> List[str]:
    return [f for f in REQUIRED_FIELDS if not column_map.get(f)]


def diagnostics(sample_row: Mapping[str, Any], column_map: ColumnMap) -> Dict[str, Any]:
    """Debug block returned with every stock response."""
    return {
        "detectedColumns": dict(column_map),
        "availableKeysInSheet": list(sample_row.keys()),
        "missingDetected": missing_fields(column_map),
    }
