"""Image candidate resolution for the magnifier."""

from image_resolver.candidate_resolver import Candidate, CandidateResolver
from image_resolver.geometry_probe import GeometryProbe, PageSnapshot, SnapshotProbe, load_snapshot
from image_resolver.srcset import SrcsetEntry, select

__all__ = [
    "Candidate",
    "CandidateResolver",
    "GeometryProbe",
    "PageSnapshot",
    "SnapshotProbe",
    "SrcsetEntry",
    "load_snapshot",
    "select",
]
