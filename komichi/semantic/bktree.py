# komichi/semantic/bktree.py
from __future__ import annotations

import heapq
from dataclasses import dataclass, field
from typing import Callable, Dict, Generic, Iterable, List, Optional, Tuple, TypeVar

T = TypeVar("T")
K = TypeVar("K")
DistanceFunc = Callable[[T, T], int]


@dataclass
class _BKNode(Generic[K, T]):
    item: T
    # (insertion sequence, key) of every entry at distance 0 from `item`
    members: List[Tuple[int, K]] = field(default_factory=list)
    children: Dict[int, "_BKNode[K, T]"] = field(default_factory=dict)


class BKTree(Generic[K, T]):
    """BK-tree over keyed items in an integer metric space.

    Notes
    -----
    - Works with any non-negative integer metric obeying the triangle
      inequality (Hamming distance in this package).
    - Items at distance 0 from an existing node share that node; every key is
      kept as a member so identical items stay individually addressable.
    - Each key gets an insertion sequence number used to break distance ties.
    """

    def __init__(self, distance_func: DistanceFunc[T]) -> None:
        self.distance_func: DistanceFunc[T] = distance_func
        self.root: Optional[_BKNode[K, T]] = None
        self._size: int = 0

    # ----------------------------
    # Construction
    # ----------------------------
    def add(self, key: K, item: T) -> None:
        """Add ``item`` under ``key``. Keys are not checked for uniqueness."""
        member = (self._size, key)
        self._size += 1

        if self.root is None:
            self.root = _BKNode(item=item, members=[member])
            return

        node = self.root
        while True:
            d = self.distance_func(item, node.item)
            if d == 0:
                node.members.append(member)
                return
            child = node.children.get(d)
            if child is None:
                node.children[d] = _BKNode(item=item, members=[member])
                return
            node = child

    def build(self, items: Iterable[Tuple[K, T]]) -> None:
        """Bulk insert ``(key, item)`` pairs."""
        for key, item in items:
            self.add(key, item)

    # ----------------------------
    # Queries
    # ----------------------------
    def nearest(self, item: T, k: int) -> List[Tuple[K, int]]:
        """
        The ``k`` keys closest to ``item``, by (distance, insertion order).

        Keeps a bounded max-heap of the best candidates; once it is full the
        worst kept distance becomes the pruning radius.
        """
        if self.root is None or k <= 0:
            return []

        # max-heap via negated (distance, seq)
        best: List[Tuple[int, int, K]] = []
        stack: List[_BKNode[K, T]] = [self.root]

        while stack:
            node = stack.pop()
            d = self.distance_func(item, node.item)

            for seq, key in node.members:
                if len(best) < k:
                    heapq.heappush(best, (-d, -seq, key))
                elif (d, seq) < (-best[0][0], -best[0][1]):
                    heapq.heapreplace(best, (-d, -seq, key))

            radius = -best[0][0] if len(best) >= k else None
            for edge, child in node.children.items():
                if radius is None or abs(edge - d) <= radius:
                    stack.append(child)

        ordered = sorted(((-nd, -ns, key) for nd, ns, key in best), key=lambda t: (t[0], t[1]))
        return [(key, d) for d, _, key in ordered]

    # ----------------------------
    # Introspection
    # ----------------------------
    def __len__(self) -> int:
        return self._size
