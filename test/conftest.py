import logging

import pytest

from fossilsampler.taxonomy import Taxonomy
from fossilsampler.tree import Node, PhyloTree


def pytest_configure(config):
    """Set up test environment before tests run."""
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


def _ultrametric_root():
    """
    ((t1:1,t2:1):1,(t3:1.5,t4:1.5):0.5);  height 2

    Ids: t1..t4 = 1..4, root = 5, (t1,t2) = 6, (t3,t4) = 7
    """
    left = Node(children=[Node(name="t1", length=1.0), Node(name="t2", length=1.0)], length=1.0)
    right = Node(children=[Node(name="t3", length=1.5), Node(name="t4", length=1.5)], length=0.5)
    return Node(children=[left, right])


@pytest.fixture
def ultrametric_tree():
    return PhyloTree(_ultrametric_root())


@pytest.fixture
def rooted_tree():
    """The ultrametric tree with a root edge of 0.5."""
    return PhyloTree(_ultrametric_root(), root_edge=0.5)


@pytest.fixture
def two_tip_tree():
    return PhyloTree.from_edges([(3, 1), (3, 2)], ["a", "b"], [1.0, 1.0])


@pytest.fixture
def stem_tree():
    """
    (f1:1,((t1:1,t2:1):1,t3:2):1);  f1 is extinct

    Ids: f1 = 1, t1 = 2, t2 = 3, t3 = 4, root = 5, crown = 6, (t1,t2) = 7
    """
    clade = Node(children=[Node(name="t1", length=1.0), Node(name="t2", length=1.0)], length=1.0)
    crown = Node(children=[clade, Node(name="t3", length=2.0)], length=1.0)
    return PhyloTree(Node(children=[Node(name="f1", length=1.0), crown]))


@pytest.fixture
def crown_tree():
    """
    (f1:1,((t1:1,(t2:0.5,f2:0.2):0.5):1,t3:2):1);  f1 (stem) and f2 (crown) are extinct

    Ids: f1 = 1, t1 = 2, t2 = 3, f2 = 4, t3 = 5,
         root = 6, crown = 7, (t1,t2,f2) = 8, (t2,f2) = 9
    """
    inner = Node(children=[Node(name="t2", length=0.5), Node(name="f2", length=0.2)], length=0.5)
    clade = Node(children=[Node(name="t1", length=1.0), inner], length=1.0)
    crown = Node(children=[clade, Node(name="t3", length=2.0)], length=1.0)
    return PhyloTree(Node(children=[Node(name="f1", length=1.0), crown]))


@pytest.fixture
def budding_taxonomy():
    """
    Species on the ``stem_tree`` edges where species 6 continues along t3
    and species 7 continues along t1.
    """
    return Taxonomy.from_records(
        [
            (6, 6, 3.0, 2.0),
            (6, 4, 2.0, 0.0),
            (7, 7, 2.0, 1.0),
            (7, 2, 1.0, 0.0),
            (3, 3, 1.0, 0.0),
            (1, 1, 3.0, 2.0),
        ]
    )


@pytest.fixture
def single_lineage():
    """One species alive from 10 to 0."""
    return Taxonomy.from_records([(1, 1, 10.0, 0.0)])
