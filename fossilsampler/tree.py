from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Optional, Sequence, Tuple, Self

import numpy as np

from fossilsampler.config import ULTRAMETRIC_TOLERANCE
from fossilsampler.exceptions import ValidationError

logger = logging.getLogger(__name__)


class Node:
    """
    Tree node with parent pointer and branch length.

    The branch length is the length of the edge leading *into* this node.
    Node ids are assigned by :class:`PhyloTree` following the ape
    convention (tips first, then internal nodes, root = n_tips + 1).
    """

    __slots__ = ("children", "parent", "name", "length", "node_id")

    children: List[Self]
    parent: Optional[Self]
    name: str
    length: Optional[float]
    node_id: Optional[int]

    def __init__(
        self,
        children: Optional[List[Self]] = None,
        name: str = "",
        length: Optional[float] = None,
        node_id: Optional[int] = None,
    ):
        # Avoid mutable default arguments; create fresh containers
        self.children = list(children) if children is not None else []
        for child in self.children:
            child.parent = self
        self.parent = None
        self.name = name
        self.length = length
        self.node_id = node_id

    def __repr__(self) -> str:
        return f"Node('{self.name}', id={self.node_id})"

    def append_child(self, node: Self) -> None:
        node.parent = self
        self.children.append(node)

    def is_leaf(self) -> bool:
        return len(self.children) == 0

    def is_internal(self) -> bool:
        return bool(self.children)

    def traverse(self) -> List[Self]:
        """
        Return all nodes of the subtree rooted at this node in pre-order.
        Uses an explicit stack to avoid recursion depth issues on deep trees.
        """
        nodes: List[Self] = []
        stack: List[Self] = [self]
        while stack:
            current = stack.pop()
            nodes.append(current)
            # Reverse keeps the left-to-right visit order
            stack.extend(reversed(current.children))
        return nodes

    def get_leaves(self) -> List[Self]:
        return [nd for nd in self.traverse() if not nd.children]

    def get_root(self) -> Self:
        cur = self
        while cur.parent is not None:
            cur = cur.parent
        return cur

    def ancestors(self) -> List[Self]:
        """Nodes from this node's parent up to the root, in that order."""
        path: List[Self] = []
        current = self.parent
        while current is not None:
            path.append(current)
            current = current.parent
        return path

    def find_lowest_common_ancestor(self, other: Self) -> Optional[Self]:
        if self is other:
            return self

        self_ancestors = {id(self)} | {id(nd) for nd in self.ancestors()}

        current: Optional[Self] = other
        while current is not None:
            if id(current) in self_ancestors:
                return current
            current = current.parent
        return None

    def _shallow_copy(self, keep_ids: bool) -> Self:
        # Skip __init__, children are attached by the caller
        new_node = object.__new__(type(self))
        new_node.name = self.name
        new_node.length = self.length
        new_node.node_id = self.node_id if keep_ids else None
        new_node.parent = None
        new_node.children = []
        return new_node

    def deep_copy(self, keep_ids: bool = True) -> Self:
        """Copy the subtree rooted here; the copy's root has no parent."""
        new_root = self._shallow_copy(keep_ids)
        stack: List[Tuple[Self, Self]] = [(self, new_root)]
        while stack:
            original, copy = stack.pop()
            for child in original.children:
                child_copy = child._shallow_copy(keep_ids)
                copy.append_child(child_copy)
                stack.append((child, child_copy))
        return new_root


class PhyloTree:
    """
    Rooted, edge-weighted tree with ape-style integer node ids.

    Tips are numbered ``1..n`` and internal nodes ``n+1..N`` with the root
    at ``n+1``. Edges are listed in cladewise (pre-order) order of their
    child node. The optional ``root_edge`` is the length of the pendant edge
    above the root.
    """

    def __init__(self, root: Node, root_edge: Optional[float] = None):
        if root_edge is not None and root_edge < 0:
            raise ValidationError(f"root_edge must be non-negative, got {root_edge}")
        self.root = root
        self.root.parent = None
        self.root_edge = float(root_edge) if root_edge is not None else None
        self._preorder: List[Node] = []
        self._nodes: Dict[int, Node] = {}
        self._tip_ids: Dict[str, int] = {}
        self._index()

    # ------------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------------
    @classmethod
    def from_edges(
        cls,
        edge: Sequence[Tuple[int, int]],
        tip_labels: Sequence[str],
        edge_length: Optional[Sequence[float]] = None,
        root_edge: Optional[float] = None,
    ) -> "PhyloTree":
        """Build a tree from an ape-style ``(parent, child)`` edge matrix."""
        if edge_length is not None and len(edge_length) != len(edge):
            raise ValidationError(
                f"{len(edge_length)} edge lengths given for {len(edge)} edges"
            )
        nodes: Dict[int, Node] = {}

        def _get(node_id: int) -> Node:
            if node_id not in nodes:
                nodes[node_id] = Node(node_id=int(node_id))
            return nodes[node_id]

        for row, (parent_id, child_id) in enumerate(edge):
            child = _get(child_id)
            if child.parent is not None:
                raise ValidationError(f"Node {child_id} has more than one parent")
            if edge_length is not None:
                child.length = float(edge_length[row])
            _get(parent_id).append_child(child)

        n_tips = len(tip_labels)
        if n_tips + 1 not in nodes:
            raise ValidationError(f"Root node {n_tips + 1} missing from edge matrix")
        if nodes[n_tips + 1].parent is not None:
            raise ValidationError(f"Root node {n_tips + 1} cannot have a parent")
        for node_id, label in enumerate(tip_labels, start=1):
            if node_id not in nodes:
                raise ValidationError(f"Tip {node_id} missing from edge matrix")
            nodes[node_id].name = str(label)
        return cls(nodes[n_tips + 1], root_edge=root_edge)

    def _index(self) -> None:
        order: List[Node] = []
        stack: List[Node] = [self.root]
        while stack:
            current = stack.pop()
            order.append(current)
            for child in reversed(current.children):
                child.parent = current
                stack.append(child)

        tips = [nd for nd in order if not nd.children]
        internals = [nd for nd in order if nd.children]
        n_tips = len(tips)

        if any(nd.node_id is None for nd in order):
            for i, nd in enumerate(tips, start=1):
                nd.node_id = i
            for i, nd in enumerate(internals, start=n_tips + 1):
                nd.node_id = i
        else:
            tip_ids = sorted(nd.node_id for nd in tips)
            internal_ids = sorted(nd.node_id for nd in internals)
            if tip_ids != list(range(1, n_tips + 1)) or internal_ids != list(
                range(n_tips + 1, len(order) + 1)
            ):
                raise ValidationError(
                    "Node ids must number tips 1..n and internal nodes n+1..N"
                )
            if self.root.node_id != n_tips + 1 and internals:
                raise ValidationError(
                    f"Root must carry node id {n_tips + 1}, got {self.root.node_id}"
                )

        for nd in tips:
            if not nd.name:
                nd.name = f"t{nd.node_id}"
        self._tip_ids = {}
        for nd in tips:
            if nd.name in self._tip_ids:
                raise ValidationError(f"Duplicate tip label '{nd.name}'")
            self._tip_ids[nd.name] = nd.node_id  # type: ignore[assignment]

        self._preorder = order
        self._nodes = {nd.node_id: nd for nd in order}  # type: ignore[misc]

    def __repr__(self) -> str:
        return f"PhyloTree(n_tips={self.n_tips}, n_nodes={self.n_nodes}, root_edge={self.root_edge})"

    # ------------------------------------------------------------------------
    # Structure
    # ------------------------------------------------------------------------
    @property
    def n_tips(self) -> int:
        return len(self._tip_ids)

    @property
    def n_nodes(self) -> int:
        return len(self._nodes)

    @property
    def root_id(self) -> int:
        return self.root.node_id  # type: ignore[return-value]

    @property
    def tip_labels(self) -> List[str]:
        return [self._nodes[i].name for i in range(1, self.n_tips + 1)]

    @property
    def edges(self) -> List[Tuple[int, int]]:
        """``(parent_id, child_id)`` pairs in cladewise order."""
        return [
            (nd.parent.node_id, nd.node_id)  # type: ignore[union-attr,misc]
            for nd in self._preorder
            if nd.parent is not None
        ]

    @property
    def edge_lengths(self) -> np.ndarray:
        return np.array(
            [
                np.nan if nd.length is None else nd.length
                for nd in self._preorder
                if nd.parent is not None
            ],
            dtype=float,
        )

    def node(self, node_id: int) -> Node:
        try:
            return self._nodes[node_id]
        except KeyError:
            raise ValidationError(f"Unknown node id {node_id}") from None

    def nodes(self) -> List[Node]:
        """All nodes in pre-order."""
        return list(self._preorder)

    def postorder(self) -> List[Node]:
        """All nodes, children before parents."""
        return list(reversed(self._preorder))

    def tip_id(self, label: str) -> int:
        try:
            return self._tip_ids[label]
        except KeyError:
            raise ValidationError(f"Unknown tip label '{label}'") from None

    def is_tip(self, node_id: int) -> bool:
        return 1 <= node_id <= self.n_tips

    def parent_id(self, node_id: int) -> Optional[int]:
        parent = self.node(node_id).parent
        return parent.node_id if parent is not None else None

    def children_ids(self, node_id: int) -> List[int]:
        return [child.node_id for child in self.node(node_id).children]  # type: ignore[misc]

    def ancestors(self, node_id: int) -> List[int]:
        """Ancestor ids of ``node_id`` from its parent up to the root."""
        return [nd.node_id for nd in self.node(node_id).ancestors()]  # type: ignore[misc]

    def descendant_nodes(self, node_id: int) -> List[int]:
        """Ids of all nodes strictly below ``node_id``."""
        return [nd.node_id for nd in self.node(node_id).traverse()[1:]]  # type: ignore[misc]

    def descendant_tips(self, node_id: int) -> List[str]:
        return [nd.name for nd in self.node(node_id).get_leaves()]

    def mrca(self, labels: Iterable[str]) -> int:
        """Id of the most recent common ancestor of the given tips."""
        tips = [self.node(self.tip_id(label)) for label in labels]
        if not tips:
            raise ValidationError("At least one tip label is required")
        ancestor: Optional[Node] = tips[0]
        for tip in tips[1:]:
            ancestor = ancestor.find_lowest_common_ancestor(tip)  # type: ignore[union-attr]
        return ancestor.node_id  # type: ignore[union-attr,return-value]

    # ------------------------------------------------------------------------
    # Properties used by the simulation and pruning code
    # ------------------------------------------------------------------------
    def has_edge_lengths(self) -> bool:
        return all(nd.length is not None for nd in self._preorder if nd.parent is not None)

    def is_rooted(self) -> bool:
        # A basal multifurcation without a root edge cannot be told apart from an unrooted tree
        return self.root_edge is not None or len(self.root.children) <= 2

    def is_binary(self) -> bool:
        return all(len(nd.children) == 2 for nd in self._preorder if nd.children)

    def node_depths(self) -> Dict[int, float]:
        """Distance from the root to every node, the root edge excluded."""
        depths: Dict[int, float] = {}
        for nd in self._preorder:
            if nd.parent is None:
                depths[nd.node_id] = 0.0  # type: ignore[index]
            else:
                depths[nd.node_id] = depths[nd.parent.node_id] + (nd.length or 0.0)  # type: ignore[index]
        return depths

    def tip_depths(self) -> Dict[str, float]:
        depths = self.node_depths()
        return {label: depths[node_id] for label, node_id in self._tip_ids.items()}

    def height(self) -> float:
        return max(self.tip_depths().values())

    def node_ages(self) -> Dict[int, float]:
        """Age (time before the youngest tip) of every node."""
        depths = self.node_depths()
        height = max(depths.values())
        return {node_id: max(height - depth, 0.0) for node_id, depth in depths.items()}

    def is_ultrametric(self, tol: float = ULTRAMETRIC_TOLERANCE) -> bool:
        tip_depths = np.array(list(self.tip_depths().values()))
        deepest = tip_depths.max()
        if deepest == 0:
            return True
        return bool((deepest - tip_depths.min()) / deepest <= tol)

    # ------------------------------------------------------------------------
    # Pruning
    # ------------------------------------------------------------------------
    def drop_tips(self, labels: Iterable[str]) -> "PhyloTree":
        """
        Return a new tree without the given tips.

        Internal nodes left without descendants are removed and single-child
        nodes are collapsed, their branch length added to the child's. Nodes
        are renumbered. The root edge is kept only if the root survives.
        """
        drop = set(labels)
        for label in drop:
            self.tip_id(label)
        if drop >= set(self._tip_ids):
            raise ValidationError("Cannot drop every tip of the tree")

        root = self.root.deep_copy(keep_ids=False)
        removed: set[int] = set()
        for nd in reversed(root.traverse()):
            if not nd.children:
                if nd.name in drop:
                    removed.add(id(nd))
                continue
            nd.children = [ch for ch in nd.children if id(ch) not in removed]
            if not nd.children:
                removed.add(id(nd))

        stack: List[Node] = [root]
        while stack:
            current = stack.pop()
            spliced: List[Node] = []
            for child in current.children:
                while len(child.children) == 1:
                    only = child.children[0]
                    only.length = (only.length or 0.0) + (child.length or 0.0)
                    child = only
                child.parent = current
                spliced.append(child)
            current.children = spliced
            stack.extend(spliced)

        root_edge = self.root_edge
        while len(root.children) == 1:
            root = root.children[0]
            root.parent = None
            root_edge = None

        logger.debug(f"Dropped {len(drop)} tips, {len(root.get_leaves())} remain")
        return PhyloTree(root, root_edge=root_edge)
