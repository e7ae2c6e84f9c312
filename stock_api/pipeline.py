"""
Availability + cascading filter over sheet rows.

Order of operations:
  1. drop rows whose location mentions INVOICED (any case)
  2. model -> variant -> color -> location: collect the options for each
     dimension, then narrow by the selected value before moving on
  3. project to the result shape, drop rows without a frame number,
     sort by color
"""
from __future__ import annotations

import math
import unicodedata
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Sequence

import pandas as pd

from .columns import HEADER_CANDIDATES, ColumnMap

CASCADE = ["model", "variant", "color", "location"]
OPTION_KEYS = {"model": "models", "variant": "variants", "color": "colors", "location": "locations"}
INVOICED_MARKER = "invoiced"


def cell_text(val) -> str:
    """Blank for None/NaN, else the stripped string form (12.0 -> "12")."""
    if val is None:
        return ""
    if isinstance(val, float):
        if math.isnan(val):
            return ""
        if val.is_integer():
            return str(int(val))
    return str(val).strip()


def color_sort_key(text: str):
    # accents and case ignored first, then accents, then lowercase before uppercase
    base = "".join(c for c in unicodedata.normalize("NFKD", text) if not unicodedata.combining(c))
    return (base.casefold(), text.casefold(), text.swapcase())


def empty_options() -> Dict[str, List[str]]:
    return {key: [] for key in OPTION_KEYS.values()}


@dataclass(frozen=True)
class FilterSelection:
    model: str = ""
    variant: str = ""
    color: str = ""
    location: str = ""

    @classmethod
    def from_args(cls, args: Mapping[str, Any]) -> "FilterSelection":
        return cls(**{dim: cell_text(args.get(dim)) for dim in CASCADE})


@dataclass
class StockView:
    options: Dict[str, List[str]] = field(default_factory=empty_options)
    results: List[Dict[str, str]] = field(default_factory=list)
    total_records: int = 0
    available_records: int = 0

    @property
    def filtered_records(self) -> int:
        return len(self.results)

    def meta(self) -> Dict[str, int]:
        return {
            "totalRecords": self.total_records,
            "availableRecords": self.available_records,
            "filteredRecords": self.filtered_records,
        }


def field_frame(rows: Sequence[Mapping[str, Any]], column_map: ColumnMap) -> pd.DataFrame:
    """One text column per semantic field; undetected fields are all blank."""
    raw = pd.DataFrame(list(rows), dtype=object)
    frame = pd.DataFrame(index=raw.index)
    for name in HEADER_CANDIDATES:
        header = column_map.get(name)
        if header and header in raw.columns:
            frame[name] = raw[header].map(cell_text).astype(object)
        else:
            frame[name] = pd.Series("", index=raw.index, dtype=object)
    return frame


def _options(frame: pd.DataFrame, dim: str) -> List[str]:
    return sorted({v for v in frame[dim].tolist() if v})


def apply(rows: Sequence[Mapping[str, Any]], column_map: ColumnMap, selection: FilterSelection) -> StockView:
    frame = field_frame(rows, column_map)

    invoiced = frame["location"].str.lower().str.contains(INVOICED_MARKER, regex=False)
    available = frame[~invoiced.astype(bool)]

    options = empty_options()
    step = available
    for dim in CASCADE:
        options[OPTION_KEYS[dim]] = _options(step, dim)
        wanted = getattr(selection, dim)
        if wanted:
            step = step[step[dim] == wanted]

    results = [
        {
            "frameNumber": r["frameNo"],
            "color": r["color"],
            "location": r["location"],
            "executiveName": r["executive"],
            "model": r["model"],
            "variant": r["variant"],
        }
        for r in step.to_dict("records")
        if r["frameNo"]
    ]
    results.sort(key=lambda r: color_sort_key(r["color"]))

    return StockView(
        options=options,
        results=results,
        total_records=len(rows),
        available_records=len(available.index),
    )
