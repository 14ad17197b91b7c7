"""Tree builder: turns a flat node list into a forest.

The forest is stored as an arena: a dense node list plus per-node parent and
child index lists. Every walk over it is iterative, so arbitrarily deep chains
never hit the interpreter recursion limit.

Resolution rules, applied in this order:
  1. Duplicate ids: first occurrence wins, later copies are dropped.
  2. Sentinel root: the node whose parent_id is its own id. If several nodes
     self-reference, the first by (order, id) is the sentinel and the others
     become orphans.
  3. Orphans: null, empty or dangling parent_id. Orphans are attached under
     the sentinel when one exists, otherwise they are additional roots.
  4. Cycles: parent links forming a cycle are found with networkx; in each
     cycle the member with the highest id loses its parent link and becomes an
     orphan.
  5. Sibling groups (and roots) are sorted by (order, id).
"""

from __future__ import annotations

import logging
from collections.abc import Collection, Iterable, Iterator
from dataclasses import dataclass, field
from functools import cached_property

import networkx as nx

from celestial_globe.models import TopologyNode

logger = logging.getLogger(__name__)

NO_PARENT = -1


def sibling_key(node: TopologyNode) -> tuple[int, str]:
    """Sort key for siblings: order first, id breaks ties."""
    return (node.order, node.id)


# ─── Forest ───────────────────────────────────────────────────────────────────


@dataclass
class Forest:
    """Resolved forest in arena form.

    Attributes:
        nodes: Dense node list; a node's position here is its index.
        index: Maps node id → index.
        parents: Parent index per node (``NO_PARENT`` for roots). Orphans
            attached under the sentinel have the sentinel as parent.
        children: Child indices per node, sorted by (order, id).
        roots: Root indices, sorted by (order, id). When a sentinel exists it
            is the only root.
        sentinel: Index of the sentinel root, if any.
        orphans: Indices of nodes whose parent link did not resolve (including
            links dropped to break cycles), sorted by (order, id).
        broken_links: (child_id, parent_id) pairs dropped to break cycles.
    """

    nodes: list[TopologyNode]
    index: dict[str, int]
    parents: list[int]
    children: list[list[int]]
    roots: list[int]
    sentinel: int | None = None
    orphans: list[int] = field(default_factory=list)
    broken_links: list[tuple[str, str]] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.nodes)

    def __contains__(self, node_id: object) -> bool:
        return node_id in self.index

    @property
    def ids(self) -> list[str]:
        return [n.id for n in self.nodes]

    @property
    def sentinel_id(self) -> str | None:
        return None if self.sentinel is None else self.nodes[self.sentinel].id

    def node(self, node_id: str) -> TopologyNode:
        return self.nodes[self.index[node_id]]

    def children_of(self, node_id: str) -> list[str]:
        return [self.nodes[c].id for c in self.children[self.index[node_id]]]

    def parent_of(self, node_id: str) -> str | None:
        p = self.parents[self.index[node_id]]
        return None if p == NO_PARENT else self.nodes[p].id

    def is_orphan(self, node_id: str) -> bool:
        return self.index[node_id] in self._orphan_set

    @cached_property
    def _orphan_set(self) -> frozenset[int]:
        return frozenset(self.orphans)

    # ── Walks ─────────────────────────────────────────────────────────────

    def walk(self) -> Iterator[tuple[int, int]]:
        """Yield (index, depth) in deterministic pre-order."""
        stack: list[tuple[int, int]] = [(r, 0) for r in reversed(self.roots)]
        while stack:
            idx, depth = stack.pop()
            yield idx, depth
            for child in reversed(self.children[idx]):
                stack.append((child, depth + 1))

    def preorder(self) -> list[int]:
        return [idx for idx, _ in self.walk()]

    def depths(self) -> dict[str, int]:
        return {self.nodes[idx].id: depth for idx, depth in self.walk()}

    def subtree_sizes(self) -> list[int]:
        """Subtree size per index, the node itself included."""
        sizes = [1] * len(self.nodes)
        for idx in reversed(self.preorder()):
            p = self.parents[idx]
            if p != NO_PARENT:
                sizes[p] += sizes[idx]
        return sizes

    # ── Graph Queries ─────────────────────────────────────────────────────

    @cached_property
    def digraph(self) -> nx.DiGraph:
        """Parent → child view of the resolved forest."""
        g: nx.DiGraph = nx.DiGraph()
        g.add_nodes_from(n.id for n in self.nodes)
        for idx, p in enumerate(self.parents):
            if p != NO_PARENT:
                g.add_edge(self.nodes[p].id, self.nodes[idx].id)
        return g

    def descendants(self, node_id: str) -> set[str]:
        if node_id not in self.index:
            return set()
        return nx.descendants(self.digraph, node_id)

    def is_descendant(self, candidate: str, ancestor: str) -> bool:
        """True if ``candidate`` lies strictly below ``ancestor``."""
        if candidate not in self.index or ancestor not in self.index:
            return False
        anc = self.index[ancestor]
        p = self.parents[self.index[candidate]]
        while p != NO_PARENT:
            if p == anc:
                return True
            p = self.parents[p]
        return False

    # ── Restriction ───────────────────────────────────────────────────────

    def prune(self, hidden: Collection[str]) -> Forest:
        """Return a new forest without the ``hidden`` nodes.

        The resolved structure (orphan attachment, broken cycle links,
        sibling order) is preserved; nothing is re-resolved. A kept node whose
        parent was removed becomes a root.
        """
        hidden_set = set(hidden)
        keep = [i for i, n in enumerate(self.nodes) if n.id not in hidden_set]
        remap = {old: new for new, old in enumerate(keep)}

        nodes = [self.nodes[i] for i in keep]
        parents = [remap.get(self.parents[i], NO_PARENT) for i in keep]
        children = [[remap[c] for c in self.children[i] if c in remap] for i in keep]

        roots = [remap[r] for r in self.roots if r in remap]
        promoted = [remap[i] for i in keep if self.parents[i] != NO_PARENT and self.parents[i] not in remap]
        if promoted:
            roots = sorted(roots + promoted, key=lambda i: sibling_key(nodes[i]))

        return Forest(
            nodes=nodes,
            index={n.id: i for i, n in enumerate(nodes)},
            parents=parents,
            children=children,
            roots=roots,
            sentinel=remap.get(self.sentinel) if self.sentinel is not None else None,
            orphans=[remap[o] for o in self.orphans if o in remap],
            broken_links=list(self.broken_links),
        )


# ─── Builder ──────────────────────────────────────────────────────────────────


def _dedupe(nodes: Iterable[TopologyNode]) -> list[TopologyNode]:
    seen: set[str] = set()
    unique: list[TopologyNode] = []
    for n in nodes:
        if n.id in seen:
            logger.warning("duplicate node id %r dropped", n.id)
            continue
        seen.add(n.id)
        unique.append(n)
    return unique


def find_cycle_breaks(links: dict[str, str]) -> list[tuple[str, str]]:
    """Find the parent links to drop so that ``links`` (child → parent) is acyclic.

    Each node has at most one parent, so cycles are vertex-disjoint. In every
    cycle the member with the highest id loses its link. The result is sorted
    for determinism.
    """
    g: nx.DiGraph = nx.DiGraph()
    g.add_edges_from(links.items())
    breaks: list[tuple[str, str]] = []
    for cycle in nx.simple_cycles(g):
        loser = max(cycle)
        breaks.append((loser, links[loser]))
    breaks.sort()
    return breaks


def build_forest(nodes: Iterable[TopologyNode]) -> Forest:
    """Build a resolved forest from a flat node list.

    Never raises for well-typed input: duplicates, dangling parents, extra
    self-references and cycles are all resolved (see module docstring).
    """
    unique = _dedupe(nodes)
    index: dict[str, int] = {n.id: i for i, n in enumerate(unique)}

    self_parented = sorted((n for n in unique if n.is_self_parented), key=sibling_key)
    sentinel: int | None = index[self_parented[0].id] if self_parented else None
    for extra in self_parented[1:]:
        logger.warning("node %r self-references but %r is already the sentinel", extra.id, self_parented[0].id)

    # child id → parent id, for links that resolve to another node.
    links: dict[str, str] = {}
    orphan_ids: list[str] = []
    for n in unique:
        if sentinel is not None and n.id == unique[sentinel].id:
            continue
        pid = n.parent_id
        if pid and pid != n.id and pid in index:
            links[n.id] = pid
        else:
            if pid and pid != n.id:
                logger.debug("node %r has dangling parent %r", n.id, pid)
            orphan_ids.append(n.id)

    broken = find_cycle_breaks(links)
    for child_id, parent_id in broken:
        logger.warning("cycle broken: dropped parent link %r -> %r", child_id, parent_id)
        del links[child_id]
        orphan_ids.append(child_id)

    size = len(unique)
    parents = [NO_PARENT] * size
    children: list[list[int]] = [[] for _ in range(size)]
    for child_id, parent_id in links.items():
        c, p = index[child_id], index[parent_id]
        parents[c] = p
        children[p].append(c)

    orphans = sorted((index[o] for o in orphan_ids), key=lambda i: sibling_key(unique[i]))
    if sentinel is not None:
        for o in orphans:
            parents[o] = sentinel
            children[sentinel].append(o)
        roots = [sentinel]
    else:
        roots = list(orphans)

    for group in children:
        group.sort(key=lambda i: sibling_key(unique[i]))

    return Forest(
        nodes=unique,
        index=index,
        parents=parents,
        children=children,
        roots=roots,
        sentinel=sentinel,
        orphans=orphans,
        broken_links=broken,
    )
