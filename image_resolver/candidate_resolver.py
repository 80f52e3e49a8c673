"""Find and rank the image sources stacked under a point.

Chat and gallery apps routinely bury the real photo beneath transparent
control layers and blurred placeholders, so every node in the hit stack is
searched (including all of its image descendants) and the results are scored
rather than taking the first image found.
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Sequence, Set

from image_resolver import srcset
from image_resolver.geometry_probe import GeometryProbe
from image_resolver.nodes import (
    NodeKind,
    PictureNode,
    RasterNode,
    SourceNode,
    VectorNode,
    VisualNode,
)
from image_resolver.vector_serializer import VectorSerializer, serialize_vector, svg_data_url

_LOGGER = logging.getLogger("ModernMagnifier.Resolver")

DEFAULT_MIN_IMAGE_SIZE = 20.0

SCORE_BLOB = 10000.0
SCORE_NETWORK = 5000.0
SCORE_DATA = 1000.0
NATURAL_AREA_DIVISOR = 100.0
NATURAL_AREA_CAP = 5000.0
DISPLAY_AREA_DIVISOR = 10.0
DISPLAY_AREA_CAP = 3000.0

_BACKGROUND_URL = re.compile(r"""url\(["']?(.+?)["']?\)""")


@dataclass(frozen=True)
class Candidate:
    url: str
    score: float
    source_node: VisualNode


def scheme_score(url: str) -> float:
    lowered = url.lower()
    if lowered.startswith("blob:"):
        return SCORE_BLOB
    if lowered.startswith(("http:", "https:")):
        return SCORE_NETWORK
    if lowered.startswith("data:"):
        return SCORE_DATA
    return 0.0


def score_candidate(url: str, *, natural_area: float, display_area: float) -> float:
    score = scheme_score(url)
    score += min(max(natural_area, 0.0) / NATURAL_AREA_DIVISOR, NATURAL_AREA_CAP)
    score += min(max(display_area, 0.0) / DISPLAY_AREA_DIVISOR, DISPLAY_AREA_CAP)
    return score


def parse_background_url(value: Optional[str]) -> Optional[str]:
    if not value or value.strip() == "none":
        return None
    match = _BACKGROUND_URL.search(value)
    if match is None:
        return None
    return match.group(1)


class CandidateResolver:
    """Collects scored candidates from a node stack and picks the best one."""

    def __init__(
        self,
        probe: GeometryProbe,
        *,
        min_size: float = DEFAULT_MIN_IMAGE_SIZE,
        vector_serializer: VectorSerializer = serialize_vector,
    ) -> None:
        self._probe = probe
        self._min_size = float(min_size)
        self._serialize_vector = vector_serializer
        # Each handler receives only the node variant registered for its kind.
        self._extractors: Dict[NodeKind, Callable[[Any], Optional[str]]] = {
            NodeKind.IMAGE: self._extract_raster,
            NodeKind.PICTURE: self._extract_picture,
            NodeKind.SOURCE: self._extract_source,
            NodeKind.VECTOR: self._extract_vector,
        }

    @property
    def min_size(self) -> float:
        return self._min_size

    def resolve_at(self, x: float, y: float) -> Optional[str]:
        return self.resolve(self._probe.nodes_at(x, y))

    def resolve(self, node_stack: Sequence[VisualNode]) -> Optional[str]:
        ranked = self.rank(node_stack)
        if not ranked:
            _LOGGER.debug("No image candidate in a stack of %d node(s)", len(node_stack))
            return None
        best = ranked[0]
        _LOGGER.debug(
            "Resolved %s (score=%.1f node=%s) from %d candidate(s)",
            _shorten(best.url),
            best.score,
            best.source_node.node_id,
            len(ranked),
        )
        return best.url

    def rank(self, node_stack: Sequence[VisualNode]) -> List[Candidate]:
        """Return deduplicated candidates, best first; ties keep insertion order."""
        return sorted(self.collect(node_stack), key=lambda candidate: candidate.score, reverse=True)

    def collect(self, node_stack: Sequence[VisualNode]) -> List[Candidate]:
        candidates: List[Candidate] = []
        seen: Set[str] = set()
        for node in node_stack:
            self._add_candidate(node, candidates, seen)
            self._add_background_candidate(node, candidates, seen)
            for descendant in self._probe.descendant_images(node):
                self._add_candidate(descendant, candidates, seen)
        return candidates

    # Candidate collection ---------------------------------------------------

    def _add_candidate(self, node: VisualNode, candidates: List[Candidate], seen: Set[str]) -> None:
        url = self.extract_url(node)
        if not url or url in seen:
            return
        seen.add(url)
        natural_width, natural_height = self._probe.natural_size(node)
        score = score_candidate(
            url,
            natural_area=float(natural_width * natural_height),
            display_area=self._probe.bounding_box(node).area,
        )
        candidates.append(Candidate(url=url, score=score, source_node=node))

    def _add_background_candidate(self, node: VisualNode, candidates: List[Candidate], seen: Set[str]) -> None:
        url = parse_background_url(self._probe.background_image(node))
        if not url or url in seen:
            return
        # The URL is claimed even when this box turns out too small.
        seen.add(url)
        rect = self._probe.bounding_box(node)
        if not rect.at_least(self._min_size):
            return
        score = score_candidate(url, natural_area=0.0, display_area=rect.area)
        candidates.append(Candidate(url=url, score=score, source_node=node))

    # URL extraction ---------------------------------------------------------

    def extract_url(self, node: VisualNode) -> Optional[str]:
        extractor = self._extractors.get(node.kind)
        if extractor is None:
            return None
        return extractor(node)

    def _too_small(self, node: VisualNode) -> bool:
        return not self._probe.bounding_box(node).at_least(self._min_size)

    def _extract_raster(self, node: RasterNode) -> Optional[str]:
        if self._too_small(node):
            return None
        return (
            srcset.select(node.srcset)
            or node.src
            or node.data_src
            or node.data_lazy_src
            or node.data_original
            or None
        )

    def _extract_picture(self, node: PictureNode) -> Optional[str]:
        if self._too_small(node):
            return None
        for source in self._probe.descendant_sources(node):
            url = srcset.select(source.srcset) or source.src
            if url:
                return url
        raster = self._probe.first_descendant_raster(node)
        if raster is None or self._too_small(raster):
            return None
        return srcset.select(raster.srcset) or raster.src or raster.data_src or None

    def _extract_source(self, node: SourceNode) -> Optional[str]:
        # Sources have no layout box of their own, so no size filter applies.
        return srcset.select(node.srcset) or node.src or None

    def _extract_vector(self, node: VectorNode) -> Optional[str]:
        if self._too_small(node):
            return None
        document = self._serialize_vector(self._probe.vector_root(node))
        if not document:
            return None
        return svg_data_url(document)


def _shorten(url: str, limit: int = 96) -> str:
    if len(url) <= limit:
        return url
    return f"{url[:limit]}…"
