"""Geometry queries over a visual node tree.

The resolver never walks the tree itself; it asks a probe. ``SnapshotProbe``
answers those questions from a serialized page snapshot (JSON) so the
resolution pipeline can run outside a browser.
"""
from __future__ import annotations

import base64
import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Protocol, Sequence, Tuple

from image_resolver.nodes import (
    GenericNode,
    NodeKind,
    PictureNode,
    RasterNode,
    Rect,
    SourceNode,
    VectorNode,
    VisualNode,
    iter_descendants,
)

_LOGGER = logging.getLogger("ModernMagnifier.Resolver.Probe")


class SnapshotError(ValueError):
    """Raised when a page snapshot cannot be parsed."""


class GeometryProbe(Protocol):
    def nodes_at(self, x: float, y: float) -> List[VisualNode]: ...
    def bounding_box(self, node: VisualNode) -> Rect: ...
    def background_image(self, node: VisualNode) -> Optional[str]: ...
    def natural_size(self, node: VisualNode) -> Tuple[int, int]: ...
    def descendant_images(self, node: VisualNode) -> List[VisualNode]: ...
    def descendant_sources(self, node: VisualNode) -> List[SourceNode]: ...
    def first_descendant_raster(self, node: VisualNode) -> Optional[RasterNode]: ...
    def vector_root(self, node: VectorNode) -> VectorNode: ...


@dataclass
class PageSnapshot:
    root: VisualNode
    page_url: Optional[str] = None
    blobs: Dict[str, bytes] = field(default_factory=dict)


class SnapshotProbe:
    """GeometryProbe backed by an in-memory node tree."""

    def __init__(self, root: VisualNode) -> None:
        self._root = root
        self._parents: Dict[int, VisualNode] = {}
        self._paint_order: List[VisualNode] = [root]
        for node in iter_descendants(root):
            self._paint_order.append(node)
        for node in self._paint_order:
            for child in node.children:
                self._parents[id(child)] = node

    @property
    def root(self) -> VisualNode:
        return self._root

    def nodes_at(self, x: float, y: float) -> List[VisualNode]:
        """Every node whose box contains the point, topmost first."""
        hits = [
            (node.z_index, index, node)
            for index, node in enumerate(self._paint_order)
            if node.rect.contains(x, y)
        ]
        hits.sort(key=lambda item: (item[0], item[1]), reverse=True)
        return [node for _, _, node in hits]

    def bounding_box(self, node: VisualNode) -> Rect:
        return node.rect

    def background_image(self, node: VisualNode) -> Optional[str]:
        return node.background_image

    def natural_size(self, node: VisualNode) -> Tuple[int, int]:
        if isinstance(node, RasterNode):
            return max(0, node.natural_width), max(0, node.natural_height)
        return 0, 0

    def descendant_images(self, node: VisualNode) -> List[VisualNode]:
        """Raster, picture and svg-root descendants in document order."""
        matches: List[VisualNode] = []
        for child in iter_descendants(node):
            if child.kind in (NodeKind.IMAGE, NodeKind.PICTURE):
                matches.append(child)
            elif isinstance(child, VectorNode) and child.is_root:
                matches.append(child)
        return matches

    def descendant_sources(self, node: VisualNode) -> List[SourceNode]:
        return [child for child in iter_descendants(node) if isinstance(child, SourceNode)]

    def first_descendant_raster(self, node: VisualNode) -> Optional[RasterNode]:
        for child in iter_descendants(node):
            if isinstance(child, RasterNode):
                return child
        return None

    def vector_root(self, node: VectorNode) -> VectorNode:
        current: Optional[VisualNode] = node
        while current is not None:
            if isinstance(current, VectorNode) and current.is_root:
                return current
            current = self._parents.get(id(current))
        return node

    def parent_of(self, node: VisualNode) -> Optional[VisualNode]:
        return self._parents.get(id(node))


def _coerce_rect(value: Any) -> Rect:
    if isinstance(value, Mapping):
        raw = (value.get("x", 0), value.get("y", 0), value.get("width", 0), value.get("height", 0))
    elif isinstance(value, (list, tuple)) and len(value) == 4:
        raw = tuple(value)
    else:
        return Rect()
    try:
        x, y, width, height = (float(item) for item in raw)
    except (TypeError, ValueError):
        return Rect()
    return Rect(x=x, y=y, width=max(0.0, width), height=max(0.0, height))


def _coerce_int(value: Any) -> int:
    try:
        return max(0, int(value))
    except (TypeError, ValueError):
        return 0


def _optional_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value)
    return text if text else None


def build_node(payload: Mapping[str, Any], *, path: str = "root") -> VisualNode:
    """Construct a node (and its subtree) from its JSON mapping."""
    if not isinstance(payload, Mapping):
        raise SnapshotError(f"Node at {path} is not an object")
    kind_token = str(payload.get("kind") or "generic").strip().lower()
    try:
        kind = NodeKind(kind_token)
    except ValueError:
        _LOGGER.debug("Unknown node kind %r at %s; treating as generic", kind_token, path)
        kind = NodeKind.GENERIC
    children_raw = payload.get("children") or []
    if not isinstance(children_raw, Sequence) or isinstance(children_raw, (str, bytes)):
        raise SnapshotError(f"Node at {path} has a non-list 'children' value")
    children = tuple(
        build_node(child, path=f"{path}/{index}") for index, child in enumerate(children_raw)
    )
    common: Dict[str, Any] = {
        "node_id": str(payload.get("id") or path),
        "rect": _coerce_rect(payload.get("rect")),
        "background_image": _optional_str(payload.get("background_image")),
        "children": children,
        "z_index": _coerce_int(payload.get("z_index")),
    }
    if kind is NodeKind.IMAGE:
        return RasterNode(
            src=_optional_str(payload.get("src")),
            srcset=_optional_str(payload.get("srcset")),
            data_src=_optional_str(payload.get("data_src")),
            data_lazy_src=_optional_str(payload.get("data_lazy_src")),
            data_original=_optional_str(payload.get("data_original")),
            natural_width=_coerce_int(payload.get("natural_width")),
            natural_height=_coerce_int(payload.get("natural_height")),
            **common,
        )
    if kind is NodeKind.SOURCE:
        return SourceNode(
            src=_optional_str(payload.get("src")),
            srcset=_optional_str(payload.get("srcset")),
            **common,
        )
    if kind is NodeKind.VECTOR:
        return VectorNode(
            element=str(payload.get("element") or "svg"),
            markup=_optional_str(payload.get("markup")),
            **common,
        )
    if kind is NodeKind.PICTURE:
        return PictureNode(**common)
    return GenericNode(tag=str(payload.get("tag") or "div"), **common)


def parse_snapshot(data: Mapping[str, Any]) -> PageSnapshot:
    if not isinstance(data, Mapping):
        raise SnapshotError("Snapshot must be a JSON object")
    root_payload = data.get("root")
    if root_payload is None:
        raise SnapshotError("Snapshot is missing the 'root' node")
    blobs: Dict[str, bytes] = {}
    blob_block = data.get("blobs") or {}
    if isinstance(blob_block, Mapping):
        for url, encoded in blob_block.items():
            try:
                blobs[str(url)] = base64.b64decode(str(encoded), validate=True)
            except (ValueError, TypeError):
                _LOGGER.warning("Skipping undecodable blob payload for %s", url)
    return PageSnapshot(
        root=build_node(root_payload),
        page_url=_optional_str(data.get("page_url")),
        blobs=blobs,
    )


def load_snapshot(path: Path) -> PageSnapshot:
    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise SnapshotError(f"Unable to read snapshot {path}: {exc}") from exc
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise SnapshotError(f"Snapshot {path} is not valid JSON: {exc}") from exc
    snapshot = parse_snapshot(data)
    _LOGGER.debug("Loaded snapshot %s (page=%s blobs=%d)", path, snapshot.page_url, len(snapshot.blobs))
    return snapshot
