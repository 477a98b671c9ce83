"""
Damped power iteration over a pagerank_graph.Graph.

Every round the rank held by dangling nodes is spread evenly over all nodes,
the rest flows along the links, and the round's new vector is compared with
the previous one by L1 distance. Link contributions are computed in parallel:
sources are cut into contiguous ranges of roughly equal edge count, each
worker fills a private accumulator, and the accumulators are summed once all
workers are done.
"""

import os
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Iterator, List, NamedTuple, Optional, Tuple

import numpy as np

from pagerank_errors import InvalidParameterError
from pagerank_events import log_event
from pagerank_graph import Graph


class Iteration(NamedTuple):
    number: int
    ranks: np.ndarray
    change: float
    converged: bool


def _source_ranges(out_degree: np.ndarray, parts: int) -> List[Tuple[int, int]]:
    """Edge slices [lo, hi) that never split a source node's links."""
    n = len(out_degree)
    indptr = np.zeros(n + 1, dtype=np.int64)
    np.cumsum(out_degree, out=indptr[1:])
    m = int(indptr[-1])
    if m == 0:
        return []
    targets = np.linspace(0, m, parts + 1)
    node_bounds = np.searchsorted(indptr, targets, side="left")
    node_bounds[0] = 0
    node_bounds[-1] = n
    edge_bounds = np.unique(indptr[node_bounds])
    return [(int(lo), int(hi)) for lo, hi in zip(edge_bounds[:-1], edge_bounds[1:])]


def _accumulate(share: np.ndarray, edge_src: np.ndarray, edge_dst: np.ndarray,
                lo: int, hi: int, n: int) -> np.ndarray:
    return np.bincount(edge_dst[lo:hi], weights=share[edge_src[lo:hi]], minlength=n)


class RankEngine:
    def __init__(self, graph: Graph, workers: Optional[int] = None,
                 max_iterations: Optional[int] = None):
        if workers is None:
            workers = os.cpu_count() or 1
        if workers < 1:
            raise InvalidParameterError(f"workers must be at least 1, got {workers}")
        if max_iterations is not None and max_iterations < 1:
            raise InvalidParameterError(f"max_iterations must be at least 1, got {max_iterations}")
        self.graph = graph
        self.workers = workers
        self.max_iterations = max_iterations

    def initial_ranks(self) -> np.ndarray:
        n = len(self.graph)
        return np.full(n, 1.0 / n) if n else np.zeros(0)

    def iterations(self, damping_factor: float, tolerance: float) -> Iterator[Iteration]:
        """
        Yields one Iteration per round until the L1 change drops to
        `tolerance` or max_iterations rounds have run. Yielded rank vectors
        are read-only.
        """
        _check_parameters(damping_factor, tolerance)
        return self._iterate(self.graph.to_arrays(), float(damping_factor), float(tolerance))

    def _iterate(self, arrays, d: float, tol: float) -> Iterator[Iteration]:
        out_degree, edge_src, edge_dst = arrays
        n = len(out_degree)
        if n == 0:
            return
        dangling = np.flatnonzero(out_degree == 0)
        has_links = out_degree > 0
        ranges = _source_ranges(out_degree, self.workers)

        current = self.initial_ranks()
        share = np.zeros(n)
        number = 0
        with ThreadPoolExecutor(max_workers=self.workers) as pool:
            while True:
                number += 1
                dangling_mass = float(current[dangling].sum())
                base = (1.0 - d) / n + d * dangling_mass / n

                np.divide(current, out_degree, out=share, where=has_links)
                share *= d
                partials = list(pool.map(
                    lambda r: _accumulate(share, edge_src, edge_dst, r[0], r[1], n),
                    ranges,
                ))

                nxt = np.full(n, base)
                for acc in partials:
                    nxt += acc
                nxt /= nxt.sum()
                nxt.setflags(write=False)

                change = float(np.abs(nxt - current).sum())
                converged = change <= tol
                yield Iteration(number, nxt, change, converged)
                if converged:
                    return
                if self.max_iterations is not None and number >= self.max_iterations:
                    return
                current = nxt

    def _final(self, damping_factor: float, tolerance: float) -> Optional[Iteration]:
        rounds = self.iterations(damping_factor, tolerance)
        log_event(
            "rank_started",
            nodes=len(self.graph),
            edges=self.graph.edge_count,
            dangling=len(self.graph.dangling_nodes()),
            workers=self.workers,
        )
        start = time.time()
        last = None
        for last in rounds:
            pass
        if last is None:
            return None

        if last.converged:
            log_event("rank_converged", iterations=last.number, change=last.change,
                      seconds=round(time.time() - start, 6))
        else:
            log_event("rank_max_iterations", iterations=last.number, change=last.change)
        return last

    def rank(self, damping_factor: float, tolerance: float,
             sink: Callable[[int, float], None]) -> int:
        """
        Runs to convergence, then calls sink(node_id, rank) once per node in
        ascending id order. Returns the number of rounds run.
        """
        last = self._final(damping_factor, tolerance)
        if last is None:
            return 0
        for node, value in enumerate(last.ranks.tolist()):
            sink(node, value)
        return last.number

    def ranks(self, damping_factor: float, tolerance: float) -> Iterator[Tuple[int, float]]:
        _check_parameters(damping_factor, tolerance)
        return self._pairs(damping_factor, tolerance)

    def _pairs(self, damping_factor: float, tolerance: float) -> Iterator[Tuple[int, float]]:
        last = self._final(damping_factor, tolerance)
        if last is None:
            return
        for node in range(len(last.ranks)):
            yield node, float(last.ranks[node])


def _check_parameters(damping_factor: float, tolerance: float) -> None:
    if not 0.0 < damping_factor < 1.0:
        raise InvalidParameterError(
            f"damping factor must be in the open interval (0, 1), got {damping_factor}"
        )
    if not tolerance > 0.0:
        raise InvalidParameterError(f"tolerance must be positive, got {tolerance}")


def rank(graph: Graph, damping_factor: float, tolerance: float,
         sink: Callable[[int, float], None], workers: Optional[int] = None,
         max_iterations: Optional[int] = None) -> int:
    return RankEngine(graph, workers=workers, max_iterations=max_iterations).rank(
        damping_factor, tolerance, sink
    )
