"""Hierarchical circle packing for the visible repository subtree.

Every leaf gets a circle whose area is proportional to its weight (file size
with a floor, so empty files and empty directories stay visible). Siblings
are packed with the front-chain algorithm, each parent encloses its children
with the smallest circle containing them, and the whole tree is scaled into a
square centered on the origin. The result is deterministic: the enclosing
circle step shuffles with a fixed-seed linear congruential generator.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Mapping, Optional, Sequence

from repoverse.core.logging import get_logger
from repoverse.graph.model import ROOT_ID, GraphModel, GraphNode
from repoverse.layout.store import Position, PositionStore

logger = get_logger(__name__)


@dataclass
class PackConfig:
    root_padding: float = 20.0
    nested_padding: float = 8.0
    margin: float = 40.0
    fill_ratio: float = 0.85
    min_size: float = 400.0
    label_radius: float = 40.0

    @classmethod
    def from_settings(cls, settings: Mapping | None = None) -> "PackConfig":
        settings = settings or {}
        defaults = cls()
        return cls(
            **{
                name: float(settings.get(name, getattr(defaults, name)))
                for name in ("root_padding", "nested_padding", "margin", "fill_ratio", "min_size", "label_radius")
            }
        )

    def size_for(self, width: float, height: float) -> float:
        available = min(width, height) - self.margin * 2
        return max(self.min_size, available * self.fill_ratio)


@dataclass(frozen=True)
class PackedCircle:
    """Final circle for one node in the centered frame."""

    node_id: str
    x: float
    y: float
    r: float
    depth: int
    label_visible: bool


@dataclass
class _Circle:
    x: float = 0.0
    y: float = 0.0
    r: float = 0.0


@dataclass
class _PackNode(_Circle):
    node_id: str = ""
    value: float = 0.0
    depth: int = 0
    children: List["_PackNode"] = field(default_factory=list, repr=False, compare=False)
    parent: Optional["_PackNode"] = field(default=None, repr=False, compare=False)


class _Chain:
    """Doubly linked front-chain entry."""

    __slots__ = ("circle", "next", "previous")

    def __init__(self, circle: _Circle) -> None:
        self.circle = circle
        self.next: Optional[_Chain] = None
        self.previous: Optional[_Chain] = None


def lcg() -> Callable[[], float]:
    """Deterministic uniform generator in [0, 1)."""

    a, c, m = 1664525, 1013904223, 4294967296
    state = 1

    def _next() -> float:
        nonlocal state
        state = (a * state + c) % m
        return state / m

    return _next


def _shuffle(items: List[_Circle], random: Callable[[], float]) -> List[_Circle]:
    remaining = len(items)
    while remaining:
        i = int(random() * remaining)
        remaining -= 1
        items[remaining], items[i] = items[i], items[remaining]
    return items


# --- Smallest enclosing circle -------------------------------------------


def _encloses_not(a: _Circle, b: _Circle) -> bool:
    dr = a.r - b.r
    dx = b.x - a.x
    dy = b.y - a.y
    return dr < 0 or dr * dr < dx * dx + dy * dy


def _encloses_weak(a: _Circle, b: _Circle) -> bool:
    dr = a.r - b.r + max(a.r, b.r, 1) * 1e-9
    dx = b.x - a.x
    dy = b.y - a.y
    return dr > 0 and dr * dr > dx * dx + dy * dy


def _encloses_weak_all(a: _Circle, basis: Sequence[_Circle]) -> bool:
    return all(_encloses_weak(a, b) for b in basis)


def _enclose_basis1(a: _Circle) -> _Circle:
    return _Circle(a.x, a.y, a.r)


def _enclose_basis2(a: _Circle, b: _Circle) -> _Circle:
    x21, y21, r21 = b.x - a.x, b.y - a.y, b.r - a.r
    length = math.sqrt(x21 * x21 + y21 * y21)
    if not length:
        return _enclose_basis1(a if a.r >= b.r else b)
    return _Circle(
        (a.x + b.x + x21 / length * r21) / 2,
        (a.y + b.y + y21 / length * r21) / 2,
        (length + a.r + b.r) / 2,
    )


def _enclose_basis3(a: _Circle, b: _Circle, c: _Circle) -> _Circle:
    x1, y1, r1 = a.x, a.y, a.r
    x2, y2, r2 = b.x, b.y, b.r
    x3, y3, r3 = c.x, c.y, c.r
    a2, a3 = x1 - x2, x1 - x3
    b2, b3 = y1 - y2, y1 - y3
    c2, c3 = r2 - r1, r3 - r1
    d1 = x1 * x1 + y1 * y1 - r1 * r1
    d2 = d1 - x2 * x2 - y2 * y2 + r2 * r2
    d3 = d1 - x3 * x3 - y3 * y3 + r3 * r3
    ab = a3 * b2 - a2 * b3
    if ab == 0:
        return _enclose_fallback((a, b, c))
    xa = (b2 * d3 - b3 * d2) / (ab * 2) - x1
    xb = (b3 * c2 - b2 * c3) / ab
    ya = (a3 * d2 - a2 * d3) / (ab * 2) - y1
    yb = (a2 * c3 - a3 * c2) / ab
    qa = xb * xb + yb * yb - 1
    qb = 2 * (r1 + xa * xb + ya * yb)
    qc = xa * xa + ya * ya - r1 * r1
    if abs(qa) > 1e-6:
        r = -(qb + math.sqrt(max(0.0, qb * qb - 4 * qa * qc))) / (2 * qa)
    elif qb:
        r = -qc / qb
    else:
        return _enclose_fallback((a, b, c))
    return _Circle(x1 + xa + xb * r, y1 + ya + yb * r, r)


def _enclose_basis(basis: Sequence[_Circle]) -> _Circle:
    if len(basis) == 1:
        return _enclose_basis1(basis[0])
    if len(basis) == 2:
        return _enclose_basis2(basis[0], basis[1])
    return _enclose_basis3(basis[0], basis[1], basis[2])


def _extend_basis(basis: List[_Circle], p: _Circle) -> List[_Circle]:
    if _encloses_weak_all(p, basis):
        return [p]

    for b in basis:
        if _encloses_not(p, b) and _encloses_weak_all(_enclose_basis2(b, p), basis):
            return [b, p]

    for i in range(len(basis) - 1):
        for j in range(i + 1, len(basis)):
            bi, bj = basis[i], basis[j]
            if (
                _encloses_not(_enclose_basis2(bi, bj), p)
                and _encloses_not(_enclose_basis2(bi, p), bj)
                and _encloses_not(_enclose_basis2(bj, p), bi)
                and _encloses_weak_all(_enclose_basis3(bi, bj, p), basis)
            ):
                return [bi, bj, p]

    # Numerically degenerate input; fall back to the circle around everything seen.
    logger.debug("Degenerate enclosing basis; widening to all %d circles", len(basis) + 1)
    return basis + [p]


def enclose(circles: Sequence[_Circle], random: Callable[[], float]) -> Optional[_Circle]:
    """Smallest circle enclosing ``circles`` (Welzl-style incremental)."""

    items = _shuffle(list(circles), random)
    basis: List[_Circle] = []
    enclosing: Optional[_Circle] = None
    i = 0
    while i < len(items):
        p = items[i]
        if enclosing is not None and _encloses_weak(enclosing, p):
            i += 1
            continue
        basis = _extend_basis(basis, p)
        if len(basis) > 3:
            return _enclose_fallback(items)
        enclosing = _enclose_basis(basis)
        i = 0
    return enclosing


def _enclose_fallback(circles: Sequence[_Circle]) -> _Circle:
    cx = sum(c.x for c in circles) / len(circles)
    cy = sum(c.y for c in circles) / len(circles)
    r = max(math.hypot(c.x - cx, c.y - cy) + c.r for c in circles)
    return _Circle(cx, cy, r)


# --- Sibling packing ------------------------------------------------------


def _place(b: _Circle, a: _Circle, c: _Circle) -> None:
    """Position ``c`` tangent to both ``a`` and ``b``."""

    dx = b.x - a.x
    dy = b.y - a.y
    d2 = dx * dx + dy * dy
    if d2:
        a2 = (a.r + c.r) ** 2
        b2 = (b.r + c.r) ** 2
        if a2 > b2:
            x = (d2 + b2 - a2) / (2 * d2)
            y = math.sqrt(max(0.0, b2 / d2 - x * x))
            c.x = b.x - x * dx - y * dy
            c.y = b.y - x * dy + y * dx
        else:
            x = (d2 + a2 - b2) / (2 * d2)
            y = math.sqrt(max(0.0, a2 / d2 - x * x))
            c.x = a.x + x * dx - y * dy
            c.y = a.y + x * dy + y * dx
    else:
        c.x = a.x + c.r
        c.y = a.y


def _intersects(a: _Circle, b: _Circle) -> bool:
    dr = a.r + b.r - 1e-6
    dx = b.x - a.x
    dy = b.y - a.y
    return dr > 0 and dr * dr > dx * dx + dy * dy


def _score(node: _Chain) -> float:
    a = node.circle
    b = node.next.circle
    ab = a.r + b.r
    dx = (a.x * b.r + b.x * a.r) / ab
    dy = (a.y * b.r + b.y * a.r) / ab
    return dx * dx + dy * dy


def pack_siblings(circles: Sequence[_Circle], random: Callable[[], float]) -> float:
    """Pack ``circles`` around the origin in place; return the enclosing radius."""

    n = len(circles)
    if not n:
        return 0.0

    a = circles[0]
    a.x = a.y = 0.0
    if n == 1:
        return a.r

    b = circles[1]
    a.x = -b.r
    b.x = a.r
    b.y = 0.0
    if n == 2:
        return a.r + b.r

    _place(b, a, circles[2])

    ca, cb, cc = _Chain(circles[0]), _Chain(circles[1]), _Chain(circles[2])
    ca.next = cc.previous = cb
    cb.next = ca.previous = cc
    cc.next = cb.previous = ca
    head, tail = ca, cb

    i = 3
    while i < n:
        circle = circles[i]
        _place(head.circle, tail.circle, circle)
        candidate = _Chain(circle)

        # Find the closest intersecting circle on the front-chain, measured
        # by distance along the chain in either direction.
        j, k = tail.next, head.previous
        sj, sk = tail.circle.r, head.circle.r
        collided = False
        while True:
            if sj <= sk:
                if _intersects(j.circle, candidate.circle):
                    tail = j
                    head.next = tail
                    tail.previous = head
                    collided = True
                    break
                sj += j.circle.r
                j = j.next
            else:
                if _intersects(k.circle, candidate.circle):
                    head = k
                    head.next = tail
                    tail.previous = head
                    collided = True
                    break
                sk += k.circle.r
                k = k.previous
            if j is k.next:
                break
        if collided:
            continue

        candidate.previous = head
        candidate.next = tail
        head.next = candidate
        tail.previous = candidate
        tail = candidate

        # Restart the chain at the pair closest to the centroid.
        best = _score(head)
        node = candidate.next
        while node is not tail:
            value = _score(node)
            if value < best:
                head, best = node, value
            node = node.next
        tail = head.next
        i += 1

    chain = [tail.circle]
    node = tail.next
    while node is not tail:
        chain.append(node.circle)
        node = node.next
    enclosing = enclose(chain, random)

    for circle in circles:
        circle.x -= enclosing.x
        circle.y -= enclosing.y
    return enclosing.r


# --- Hierarchy --------------------------------------------------------------


def build_pack_tree(model: GraphModel, visible_ids: Sequence[str] | None = None) -> Optional[_PackNode]:
    """Pack nodes for the visible subtree, children sorted by weight descending."""

    allowed = set(visible_ids) if visible_ids is not None else None
    if allowed is not None and ROOT_ID not in allowed:
        return None

    floor = model.leaf_weight_floor
    nodes: Dict[str, _PackNode] = {}
    for node_id in model.subtree_order(list(allowed) if allowed is not None else None):
        node = model.node(node_id)
        if node is None:
            continue
        parent = nodes.get(node.parent_id or "")
        if node_id != ROOT_ID and parent is None:
            continue
        pack_node = _PackNode(node_id=node_id, parent=parent, depth=parent.depth + 1 if parent else 0)
        nodes[node_id] = pack_node
        if parent is not None:
            parent.children.append(pack_node)

    def _leaf_weight(node: GraphNode) -> float:
        # A collapsed or folders-only directory still carries its files.
        if node.is_directory:
            return float(max(model.weight(node.id), floor))
        return float(max(node.size or floor, floor))

    for pack_node in reversed(list(nodes.values())):
        if pack_node.children:
            pack_node.value = sum(child.value for child in pack_node.children)
            pack_node.children.sort(key=lambda child: child.value, reverse=True)
        else:
            pack_node.value = _leaf_weight(model.node(pack_node.node_id))
    return nodes.get(ROOT_ID)


def _each_after(root: _PackNode) -> List[_PackNode]:
    order: List[_PackNode] = []
    stack = [(root, False)]
    while stack:
        node, visited = stack.pop()
        if visited or not node.children:
            order.append(node)
            continue
        stack.append((node, True))
        stack.extend((child, False) for child in reversed(node.children))
    return order


def _each_before(root: _PackNode) -> List[_PackNode]:
    order: List[_PackNode] = []
    stack = [root]
    while stack:
        node = stack.pop()
        order.append(node)
        stack.extend(reversed(node.children))
    return order


def pack_hierarchy(root: _PackNode, size: float, padding: Callable[[_PackNode], float]) -> None:
    """Lay out ``root`` inside a ``size`` x ``size`` square."""

    root.x = root.y = size / 2
    random = lcg()

    for node in _each_before(root):
        if not node.children:
            node.r = math.sqrt(max(0.0, node.value))

    def _pack_children(pad_for: Callable[[_PackNode], float], k: float) -> None:
        for node in _each_after(root):
            if not node.children:
                continue
            pad = pad_for(node) * k
            if pad:
                for child in node.children:
                    child.r += pad
            enclosing = pack_siblings(node.children, random)
            if pad:
                for child in node.children:
                    child.r -= pad
            node.r = enclosing + pad

    def _translate(k: float) -> None:
        for node in _each_before(root):
            node.r *= k
            if node.parent is not None:
                node.x = node.parent.x + k * node.x
                node.y = node.parent.y + k * node.y

    # The unpadded pass finds the scale so padding can be expressed in output units.
    _pack_children(lambda node: 0.0, 1.0)
    if root.r <= 0:
        return
    _pack_children(padding, root.r / size)
    _translate(size / (2 * root.r))


class PackLayoutEngine:
    """One-shot circle packing written wholesale into the position store."""

    def __init__(self, store: PositionStore, settings: Mapping | None = None) -> None:
        self._store = store
        self.config = PackConfig.from_settings(settings)
        self._circles: Dict[str, PackedCircle] = {}

    @property
    def circles(self) -> Dict[str, PackedCircle]:
        return dict(self._circles)

    def compute(
        self,
        model: GraphModel,
        visible_ids: Sequence[str] | None,
        width: float,
        height: float,
    ) -> Dict[str, PackedCircle]:
        """Pack the visible subtree; an empty visible set yields no circles."""

        root = build_pack_tree(model, visible_ids)
        if root is None:
            self._circles = {}
            return {}

        size = self.config.size_for(width, height)
        pack_hierarchy(
            root,
            size,
            lambda node: self.config.root_padding if node.depth == 0 else self.config.nested_padding,
        )

        offset = -size / 2
        circles: Dict[str, PackedCircle] = {}
        for node in _each_before(root):
            circles[node.node_id] = PackedCircle(
                node_id=node.node_id,
                x=node.x + offset,
                y=node.y + offset,
                r=node.r,
                depth=node.depth,
                label_visible=node.r > self.config.label_radius,
            )
        self._circles = circles
        logger.info("Packed %d circles into %.0fpx", len(circles), size)
        return dict(circles)

    def apply(
        self,
        model: GraphModel,
        visible_ids: Sequence[str] | None,
        width: float,
        height: float,
    ) -> Dict[str, PackedCircle]:
        """Compute and replace the store contents with the packed positions."""

        circles = self.compute(model, visible_ids, width, height)
        self._store.acquire(self)
        self._store.replace(
            self,
            {node_id: Position(circle.x, circle.y, circle.r) for node_id, circle in circles.items()},
        )
        return circles

    def deactivate(self) -> None:
        self._store.release(self)
