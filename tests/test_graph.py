import numpy as np
import pytest

from pagerank_errors import InvalidParameterError, OutOfRangeError, PagerankError
from pagerank_graph import Graph


def test_new_graph_has_isolated_nodes():
    graph = Graph(4)

    assert len(graph) == 4
    assert graph.size == 4
    assert graph.edge_count == 0
    assert graph.dangling_nodes() == [0, 1, 2, 3]
    assert all(graph.out_degree(i) == 0 for i in range(4))


def test_link_appends_successor():
    graph = Graph(3)
    graph.link(0, 1)
    graph.link(0, 2)
    graph.link(2, 2)

    assert graph.successors(0) == (1, 2)
    assert graph.successors(2) == (2,)
    assert graph.out_degree(0) == 2
    assert graph.edge_count == 3
    assert graph.dangling_nodes() == [1]


def test_duplicate_links_are_counted():
    graph = Graph(2)
    graph.link(0, 1)
    graph.link(0, 1)

    assert graph.successors(0) == (1, 1)
    assert graph.out_degree(0) == 2
    assert graph.edge_count == 2


@pytest.mark.parametrize("src,dst", [(3, 0), (0, 3), (3, 3), (-1, 0), (0, -1)])
def test_out_of_range_link_leaves_graph_unchanged(src, dst):
    graph = Graph(3)
    graph.link(0, 1)

    with pytest.raises(OutOfRangeError) as exc:
        graph.link(src, dst)

    assert exc.value.size == 3
    assert graph.edge_count == 1
    assert graph.successors(0) == (1,)
    assert graph.dangling_nodes() == [1, 2]


def test_out_of_range_is_an_index_error():
    with pytest.raises(IndexError):
        Graph(0).link(0, 0)
    with pytest.raises(PagerankError):
        Graph(2).out_degree(2)


def test_negative_size_rejected():
    with pytest.raises(InvalidParameterError):
        Graph(-1)


def test_clear_keeps_nodes():
    graph = Graph(3)
    graph.link(0, 1)
    graph.link(1, 2)

    graph.clear()

    assert len(graph) == 3
    assert graph.edge_count == 0
    assert graph.dangling_nodes() == [0, 1, 2]
    graph.link(2, 0)
    assert graph.successors(2) == (0,)


def test_repr():
    graph = Graph(3)
    graph.link(0, 1)

    assert repr(graph) == "Graph(nodes=3, edges=1, dangling=2)"


def test_to_arrays_snapshot():
    graph = Graph(4)
    graph.link(2, 0)
    graph.link(0, 3)
    graph.link(0, 1)
    graph.link(2, 0)

    out_degree, edge_src, edge_dst = graph.to_arrays()

    assert out_degree.tolist() == [2, 0, 2, 0]
    assert edge_src.tolist() == [0, 0, 2, 2]
    assert edge_dst.tolist() == [3, 1, 0, 0]
    with pytest.raises(ValueError):
        out_degree[0] = 5

    graph.link(1, 1)
    assert out_degree.tolist() == [2, 0, 2, 0]


def test_to_arrays_empty_graph():
    out_degree, edge_src, edge_dst = Graph(0).to_arrays()

    assert out_degree.dtype == np.int64
    assert len(out_degree) == len(edge_src) == len(edge_dst) == 0
