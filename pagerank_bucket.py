#!/usr/bin/env python3

import argparse
import os
import re
import time
from statistics import median
from typing import Dict, List, Tuple

import numpy as np
from google.cloud import storage

import pagerank_events
from pagerank_engine import RankEngine
from pagerank_events import log_event
from pagerank_graph import Graph

HREF_RE = re.compile(r'<a\s+HREF="(\d+)\.html"', re.IGNORECASE)

BUCKET = os.environ.get("BUCKET") or os.environ.get("BUCKET_NAME")
PAGES_PREFIX = (os.environ.get("PAGES_PREFIX") or "html-pages").strip("/")
TOLERANCE = float(os.environ.get("PAGERANK_TOLERANCE", "0.005"))
WORKERS = os.environ.get("PAGERANK_WORKERS")


def percentile_quintiles(values: List[int]) -> List[float]:
    if not values:
        return [0, 0, 0, 0, 0, 0]
    arr = np.asarray(values, dtype=float)
    return np.percentile(arr, [0, 20, 40, 60, 80, 100]).tolist()


def summarize(values: List[int]) -> Dict:
    if not values:
        return {"count": 0, "min": 0, "max": 0, "avg": 0.0, "median": 0.0, "quintiles": [0, 0, 0, 0, 0, 0]}
    return {
        "count": len(values),
        "min": int(min(values)),
        "max": int(max(values)),
        "avg": float(sum(values) / len(values)),
        "median": float(median(values)),
        "quintiles": percentile_quintiles(values),
    }


def parse_outgoing_ids(html: str) -> List[int]:
    return [int(x) for x in HREF_RE.findall(html)]


def list_page_indices(client: storage.Client, bucket_name: str, prefix: str) -> List[int]:
    idxs = []
    for blob in client.list_blobs(bucket_name, prefix=prefix):
        name = blob.name
        if name.endswith("/"):
            continue
        base = name.rsplit("/", 1)[-1]
        if base.endswith(".html"):
            stem = base[:-5]
            if stem.isdigit():
                idxs.append(int(stem))
    idxs.sort()
    return idxs


def download_pages_build_graph(
    client: storage.Client,
    bucket_name: str,
    prefix: str,
    n_expected: int | None,
) -> Tuple[Graph, float]:
    """
    Returns:
      graph with one node per page and one link per href to another page,
      seconds_read
    """
    bucket = client.bucket(bucket_name)

    t0 = time.time()
    if n_expected is not None:
        n_pages = n_expected
    else:
        idxs = list_page_indices(client, bucket_name, prefix)
        n_pages = (max(idxs) + 1) if idxs else 0

    graph = Graph(n_pages)
    dropped = 0
    for i in range(n_pages):
        blob_name = f"{prefix.rstrip('/')}/{i}.html"
        blob = bucket.blob(blob_name)
        try:
            html = blob.download_as_text()
        except Exception as e:
            # a missing page stays in the graph as a dangling node
            log_event("page_unreadable", object=blob_name, error=str(e))
            html = ""

        for dst in parse_outgoing_ids(html):
            if dst >= n_pages:
                dropped += 1
                continue
            graph.link(i, dst)

    if dropped:
        log_event("link_dropped", count=dropped, pages=n_pages)
    t1 = time.time()
    log_event("graph_loaded", nodes=n_pages, edges=graph.edge_count, seconds=round(t1 - t0, 3))
    return graph, (t1 - t0)


def random_graph(n: int, seed: int = 5, max_links: int = 400, hot_nodes: int = 3) -> Graph:
    """
    Every node links to between 0 and max_links-1 uniform targets; targets in
    the top fifth of ids are sent to one of the first hot_nodes nodes instead.
    """
    rng = np.random.default_rng(seed)
    graph = Graph(n)
    if n == 0:
        return graph
    cutoff = int(n * 0.8)
    hot = min(hot_nodes, n)
    for src in range(n):
        targets = rng.integers(0, n, size=int(rng.integers(0, max_links)))
        redirect = targets > cutoff
        targets[redirect] = rng.integers(0, hot, size=int(redirect.sum()))
        for dst in targets.tolist():
            graph.link(src, dst)
    return graph


def degree_counts(graph: Graph) -> Tuple[List[int], List[int]]:
    out_degree, _, edge_dst = graph.to_arrays()
    in_degree = np.bincount(edge_dst, minlength=len(graph))
    return in_degree.tolist(), out_degree.tolist()


def top_pages(graph: Graph, damping: float, tol: float, topk: int,
              workers: int | None = None, max_iter: int | None = None) -> Tuple[List[Tuple[int, float]], int]:
    engine = RankEngine(graph, workers=workers, max_iterations=max_iter)
    scores = np.zeros(len(graph))

    def sink(node: int, value: float):
        scores[node] = value

    iters = engine.rank(damping, tol, sink)
    order = np.argsort(-scores, kind="stable")[:topk]
    return [(int(i), float(scores[i])) for i in order], iters


def main() -> None:
    ap = argparse.ArgumentParser()
    ap.add_argument("--bucket", default=BUCKET)
    ap.add_argument("--prefix", default=PAGES_PREFIX, help='Example: "pages/" (objects like pages/0.html)')
    ap.add_argument("--n", type=int, default=20000, help="Number of pages expected (default 20000).")
    ap.add_argument("--random", type=int, default=None, metavar="N",
                    help="Rank a seeded random graph of N nodes instead of bucket pages.")
    ap.add_argument("--seed", type=int, default=5)
    ap.add_argument("--damping", type=float, default=0.85)
    ap.add_argument("--tol", type=float, default=TOLERANCE)
    ap.add_argument("--workers", type=int, default=int(WORKERS) if WORKERS else None)
    ap.add_argument("--max-iter", type=int, default=None)
    ap.add_argument("--topk", type=int, default=5)
    args = ap.parse_args()

    if args.random is None and not args.bucket:
        ap.error("--bucket (or BUCKET / BUCKET_NAME env var) is required unless --random is given")

    pagerank_events.enable()

    t_all0 = time.time()
    if args.random is not None:
        t0 = time.time()
        graph = random_graph(args.random, seed=args.seed)
        read_s = time.time() - t0
    else:
        graph, read_s = download_pages_build_graph(storage.Client(), args.bucket, args.prefix, args.n)

    in_counts, out_counts = degree_counts(graph)
    in_stats = summarize(in_counts)
    out_stats = summarize(out_counts)

    t_pr0 = time.time()
    top, iters = top_pages(graph, args.damping, args.tol, args.topk,
                           workers=args.workers, max_iter=args.max_iter)
    t_all1 = time.time()

    print(f"PAGES: {len(graph)}")
    print(f"READ_SECONDS: {read_s:.3f}")
    print(f"PAGERANK_SECONDS: {(t_all1 - t_pr0):.3f}")
    print(f"TOTAL_SECONDS: {(t_all1 - t_all0):.3f}")
    print(f"PAGERANK_ITERS: {iters}")

    print("\nINCOMING_LINKS_STATS:")
    print(in_stats)
    print("\nOUTGOING_LINKS_STATS:")
    print(out_stats)

    print("\nTOP_PAGES_BY_PAGERANK:")
    for pid, score in top:
        print(f"{pid}.html\t{score:.10f}")


if __name__ == "__main__":
    main()
