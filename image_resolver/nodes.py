"""Visual node variants consumed by the candidate resolver."""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import ClassVar, Optional, Tuple, Union


class NodeKind(str, Enum):
    IMAGE = "image"
    PICTURE = "picture"
    SOURCE = "source"
    VECTOR = "vector"
    GENERIC = "generic"


@dataclass(frozen=True)
class Rect:
    x: float = 0.0
    y: float = 0.0
    width: float = 0.0
    height: float = 0.0

    @property
    def area(self) -> float:
        return self.width * self.height

    def contains(self, px: float, py: float) -> bool:
        if self.width <= 0 or self.height <= 0:
            return False
        return self.x <= px < self.x + self.width and self.y <= py < self.y + self.height

    def at_least(self, minimum: float) -> bool:
        return self.width >= minimum and self.height >= minimum


# Nodes compare by identity: two structurally equal elements are still different elements.
@dataclass(frozen=True, eq=False)
class _BaseNode:
    node_id: str = ""
    rect: Rect = field(default_factory=Rect)
    background_image: Optional[str] = None
    children: Tuple["VisualNode", ...] = ()
    z_index: int = 0


@dataclass(frozen=True, eq=False)
class RasterNode(_BaseNode):
    kind: ClassVar[NodeKind] = NodeKind.IMAGE

    src: Optional[str] = None
    srcset: Optional[str] = None
    data_src: Optional[str] = None
    data_lazy_src: Optional[str] = None
    data_original: Optional[str] = None
    natural_width: int = 0
    natural_height: int = 0


@dataclass(frozen=True, eq=False)
class PictureNode(_BaseNode):
    kind: ClassVar[NodeKind] = NodeKind.PICTURE


@dataclass(frozen=True, eq=False)
class SourceNode(_BaseNode):
    kind: ClassVar[NodeKind] = NodeKind.SOURCE

    src: Optional[str] = None
    srcset: Optional[str] = None


@dataclass(frozen=True, eq=False)
class VectorNode(_BaseNode):
    kind: ClassVar[NodeKind] = NodeKind.VECTOR

    element: str = "svg"
    markup: Optional[str] = None

    @property
    def is_root(self) -> bool:
        return self.element.lower() == "svg"


@dataclass(frozen=True, eq=False)
class GenericNode(_BaseNode):
    kind: ClassVar[NodeKind] = NodeKind.GENERIC

    tag: str = "div"


VisualNode = Union[RasterNode, PictureNode, SourceNode, VectorNode, GenericNode]


def iter_descendants(node: VisualNode):
    """Yield every descendant of ``node`` in document order (depth first)."""
    stack = list(reversed(node.children))
    while stack:
        current = stack.pop()
        yield current
        stack.extend(reversed(current.children))
