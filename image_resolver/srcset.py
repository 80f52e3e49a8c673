"""Responsive image (`srcset`) parsing and selection."""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import List, Optional

DEFAULT_DENSITY = 1.0
_LEADING_NUMBER = re.compile(r"^\s*([+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)")


@dataclass(frozen=True)
class SrcsetEntry:
    url: str
    density: float = DEFAULT_DENSITY


def _parse_density(descriptor: Optional[str]) -> float:
    """Read the leading number of a descriptor (`2x`, `1.5x`, `800w`)."""
    if not descriptor:
        return DEFAULT_DENSITY
    match = _LEADING_NUMBER.match(descriptor)
    if match is None:
        return DEFAULT_DENSITY
    try:
        value = float(match.group(1))
    except ValueError:
        return DEFAULT_DENSITY
    if value != value:  # NaN
        return DEFAULT_DENSITY
    return value


def parse_srcset(descriptor_list: Optional[str]) -> List[SrcsetEntry]:
    if not descriptor_list:
        return []
    entries: List[SrcsetEntry] = []
    for raw in descriptor_list.split(","):
        parts = raw.strip().split()
        if not parts:
            continue
        descriptor = parts[1] if len(parts) > 1 else None
        entries.append(SrcsetEntry(url=parts[0], density=_parse_density(descriptor)))
    return entries


def select(descriptor_list: Optional[str]) -> Optional[str]:
    """Return the highest-density URL from a srcset value, or None.

    Ties keep the first entry seen.
    """
    entries = parse_srcset(descriptor_list)
    if not entries:
        return None
    ranked = sorted(entries, key=lambda entry: entry.density, reverse=True)
    return ranked[0].url or None
