import operator
from typing import List, Tuple

import numpy as np

from pagerank_errors import InvalidParameterError, OutOfRangeError


class Graph:
    """
    Directed graph over the dense node ids 0..size-1.

    Each node owns an adjacency list of successor ids. Repeated links are
    kept, so a link declared twice carries twice the share of its source's
    rank. A node without outgoing links is dangling.
    """

    def __init__(self, size: int):
        size = operator.index(size)
        if size < 0:
            raise InvalidParameterError(f"graph size must be non-negative, got {size}")
        self._size = size
        self._outlinks: List[List[int]] = [[] for _ in range(size)]
        self._edge_count = 0

    def __len__(self) -> int:
        return self._size

    def __repr__(self) -> str:
        return (
            f"Graph(nodes={self._size}, edges={self._edge_count}, "
            f"dangling={len(self.dangling_nodes())})"
        )

    @property
    def size(self) -> int:
        return self._size

    @property
    def edge_count(self) -> int:
        return self._edge_count

    def _check(self, node) -> int:
        node = operator.index(node)
        if not 0 <= node < self._size:
            raise OutOfRangeError(node, self._size)
        return node

    def link(self, src: int, dst: int) -> None:
        # both ids are checked before anything is appended
        src = self._check(src)
        dst = self._check(dst)
        self._outlinks[src].append(dst)
        self._edge_count += 1

    def out_degree(self, node: int) -> int:
        return len(self._outlinks[self._check(node)])

    def successors(self, node: int) -> Tuple[int, ...]:
        return tuple(self._outlinks[self._check(node)])

    def dangling_nodes(self) -> List[int]:
        return [i for i, outs in enumerate(self._outlinks) if not outs]

    def clear(self) -> None:
        for outs in self._outlinks:
            outs.clear()
        self._edge_count = 0

    def to_arrays(self) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
        """
        Returns a read-only snapshot of the adjacency:
          out_degree: node -> number of outgoing links,
          edge_src, edge_dst: one entry per link, grouped by ascending source
        """
        out_degree = np.fromiter(
            (len(outs) for outs in self._outlinks), dtype=np.int64, count=self._size
        )
        edge_src = np.repeat(np.arange(self._size, dtype=np.int64), out_degree)
        edge_dst = np.fromiter(
            (d for outs in self._outlinks for d in outs), dtype=np.int64, count=self._edge_count
        )
        for arr in (out_degree, edge_src, edge_dst):
            arr.setflags(write=False)
        return out_degree, edge_src, edge_dst
