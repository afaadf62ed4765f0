"""
Order changes into an executable script.

Changes are split into two phases, drops first, then creates and
alters. Inside each phase a dependency graph is built from

    * the changes' own creates / drops / requires lists,
    * the catalog's pg_depend rows (main for drops, branch for creates),
    * a few ordering rules that neither of those express,

and sorted topologically. Ties are broken by a logical pre-sort so the
same input always yields the same script.
"""

import heapq
import logging
from collections import defaultdict
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Set, Tuple

from pg_delta_core.lib import stable_id
from pg_delta_core.lib.change import Change, Operation, Scope
from pg_delta_core.lib.errors import CycleError
from pg_delta_core.lib.objects import OBJECT_TYPE_ORDER

DROP_PHASE = "drop"
CREATE_ALTER_PHASE = "create_alter"
PHASES = (DROP_PHASE, CREATE_ALTER_PHASE)

SCOPE_ORDER = {
    Scope.OBJECT: 0,
    Scope.COMMENT: 1,
    Scope.PRIVILEGE: 2,
    Scope.MEMBERSHIP: 3,
    Scope.DEFAULT_PRIVILEGE: 4,
}

# Created objects that default privileges never apply to
DEFAULT_PRIVILEGE_EXEMPT = ("role", "schema")

# Edge reasons: (source, dependent id, referenced id)
Reason = Tuple[str, str, str]


def change_phase(change: Change) -> str:
    """Drops, and alters that drop a real object (a column, a constraint), run first."""
    if change.operation is Operation.DROP:
        return DROP_PHASE
    if change.operation is Operation.ALTER and any(not stable_id.is_metadata(i) for i in change.drops):
        return DROP_PHASE
    return CREATE_ALTER_PHASE


def _primary_id(change: Change) -> str:
    target = getattr(change, "target", None)
    if target is not None:
        return target.stable_id
    for ids in (change.creates, change.drops, change.requires):
        if ids:
            return ids[0]
    return ""


def logical_sort(changes: List[Change]) -> List[Change]:
    """
    Pre-sort changes by phase, object kind, object, scope and emission order.

    This is the order the topological sort falls back to whenever several
    changes are free to run.
    """
    def key(item):
        index, change = item
        return (
            PHASES.index(change_phase(change)),
            OBJECT_TYPE_ORDER.get(change.object_type, len(OBJECT_TYPE_ORDER)),
            _primary_id(change),
            SCOPE_ORDER.get(change.scope, len(SCOPE_ORDER)),
            index,
        )
    return [change for _, change in sorted(enumerate(changes), key=key)]


@dataclass
class Graph:
    """Adjacency of a phase: edges[a][b] holds why a must run before b."""
    size: int
    edges: Dict[int, Dict[int, Set[Reason]]]

    def add(self, before: int, after: int, reason: Reason):
        if before != after:
            self.edges[before][after].add(reason)

    def remove(self, before: int, after: int):
        self.edges[before].pop(after, None)


def _new_graph(size: int) -> Graph:
    return Graph(size, defaultdict(lambda: defaultdict(set)))


def _is_unknown(identifier: str) -> bool:
    return identifier.startswith("unknown:")


def build_graph(changes: List[Change], phase: str, depends: Iterable) -> Graph:
    """
    Build the ordering constraints of one phase.

    In the create/alter phase an id is produced by the changes that create
    it and a change runs after the producers of what it requires. In the
    drop phase an id is produced by the changes that create or drop it and
    edges are inverted: whatever requires an id runs before it disappears.
    """
    graph = _new_graph(len(changes))
    producers = defaultdict(list)
    for index, change in enumerate(changes):
        produced = change.creates if phase == CREATE_ALTER_PHASE else change.creates + change.drops
        for identifier in produced:
            producers[identifier].append(index)

    def link(producer: int, consumer: int, reason: Reason):
        if phase == CREATE_ALTER_PHASE:
            graph.add(producer, consumer, reason)
        else:
            graph.add(consumer, producer, reason)

    for index, change in enumerate(changes):
        for identifier in change.requires:
            for producer in producers.get(identifier, ()):
                link(producer, index, ("requires", _primary_id(change), identifier))

    for depend in depends:
        dependent, referenced = depend.dependent_stable_id, depend.referenced_stable_id
        if _is_unknown(dependent) or _is_unknown(referenced) or dependent == referenced:
            continue
        for consumer in producers.get(dependent, ()):
            for producer in producers.get(referenced, ()):
                link(producer, consumer, ("depends", dependent, referenced))

    if phase == CREATE_ALTER_PHASE:
        _default_privileges_first(changes, graph)

    return graph


def _default_privileges_first(changes: List[Change], graph: Graph):
    """ALTER DEFAULT PRIVILEGES has to run before the creates it should apply to."""
    defaults = [i for i, c in enumerate(changes) if c.scope is Scope.DEFAULT_PRIVILEGE]
    if not defaults:
        return
    for index, change in enumerate(changes):
        if (
            change.operation is Operation.CREATE
            and change.scope is Scope.OBJECT
            and change.object_type not in DEFAULT_PRIVILEGE_EXEMPT
        ):
            for default in defaults:
                graph.add(default, index, ("rule", "default_privileges", _primary_id(change)))


def _is_sequence_ownership(reason: Reason) -> bool:
    source, dependent, referenced = reason
    return (
        source == "depends"
        and dependent.startswith("sequence:")
        and (referenced.startswith("table:") or referenced.startswith("column:"))
    )


def _breakable(changes: List[Change], before: int, after: int, reasons: Set[Reason]) -> bool:
    """
    True when every reason behind an edge may be dropped to break a cycle.

    A sequence OWNED BY a column depends on the column's table, while the
    column's default depends on the sequence. Ownership is set by a
    separate ALTER SEQUENCE, so the sequence itself can be created or
    dropped without regard to the table.
    """
    sequence_changes = {changes[before].action, changes[after].action} & {"create_sequence", "drop_sequence"}
    return bool(reasons) and bool(sequence_changes) and all(_is_sequence_ownership(r) for r in reasons)


def find_cycle(graph: Graph, nodes: Set[int]) -> List[int]:
    """Return one cycle among nodes as a list of node indexes, first node not repeated."""
    state = {}
    for start in sorted(nodes):
        if start in state:
            continue
        path = []
        stack = [(start, iter(sorted(n for n in graph.edges[start] if n in nodes)))]
        state[start] = "open"
        path.append(start)
        while stack:
            node, successors = stack[-1]
            advanced = False
            for successor in successors:
                if state.get(successor) == "open":
                    return path[path.index(successor):]
                if successor not in state:
                    state[successor] = "open"
                    path.append(successor)
                    stack.append((successor, iter(sorted(n for n in graph.edges[successor] if n in nodes))))
                    advanced = True
                    break
            if not advanced:
                state[node] = "done"
                path.pop()
                stack.pop()
    return []


def topological_sort(graph: Graph) -> Tuple[List[int], Set[int]]:
    """
    Kahn's algorithm always taking the smallest free index.

    Returns:
        (order, remaining): sorted indexes and the indexes left in cycles
    """
    in_degree = [0] * graph.size
    for before in list(graph.edges):
        for after in graph.edges[before]:
            in_degree[after] += 1
    queue = [i for i in range(graph.size) if in_degree[i] == 0]
    heapq.heapify(queue)
    order = []
    while queue:
        current = heapq.heappop(queue)
        order.append(current)
        for after in graph.edges[current]:
            in_degree[after] -= 1
            if in_degree[after] == 0:
                heapq.heappush(queue, after)
    remaining = set(range(graph.size)) - set(order)
    return order, remaining


def _cycle_error(changes: List[Change], cycle: List[int], phase: str) -> CycleError:
    ids = []
    for index in cycle:
        for identifier in changes[index].creates + changes[index].drops or [_primary_id(changes[index])]:
            if identifier not in ids:
                ids.append(identifier)
    descriptions = [str(changes[index]) for index in cycle]
    message = f"Unresolvable dependency cycle in {phase} phase: " + " -> ".join(descriptions)
    return CycleError(message, stable_ids=ids, changes=descriptions)


def sort_phase(changes: List[Change], phase: str, depends: Iterable) -> List[Change]:
    depends = list(depends)
    graph = build_graph(changes, phase, depends)
    edge_count = sum(len(successors) for successors in graph.edges.values())
    logging.debug(f"{phase} phase: {len(changes)} changes, {edge_count} edges")

    while True:
        order, remaining = topological_sort(graph)
        if not remaining:
            return [changes[index] for index in order]

        cycle = find_cycle(graph, remaining)
        logging.debug(f"{phase} phase: cycle {[str(changes[i]) for i in cycle]}")
        broken = False
        for position, before in enumerate(cycle):
            after = cycle[(position + 1) % len(cycle)]
            if _breakable(changes, before, after, graph.edges[before].get(after, set())):
                logging.debug(f"Breaking edge {changes[before]} -> {changes[after]}")
                graph.remove(before, after)
                broken = True
        if not broken:
            raise _cycle_error(changes, cycle, phase)


def sort_changes(main, branch, changes: List[Change]) -> List[Change]:
    """
    Order changes so that every statement runs after what it needs and
    before what it would block from being dropped.

    main and branch are the catalogs the changes were computed from; their
    pg_depend rows complete the changes' own requires lists.
    """
    ordered = logical_sort(changes)
    by_phase = {phase: [] for phase in PHASES}
    for change in ordered:
        by_phase[change_phase(change)].append(change)

    result = []
    result.extend(sort_phase(by_phase[DROP_PHASE], DROP_PHASE, main.depends if main is not None else ()))
    result.extend(sort_phase(
        by_phase[CREATE_ALTER_PHASE], CREATE_ALTER_PHASE, branch.depends if branch is not None else ()
    ))
    return result


def check_order(changes: List[Change]) -> Optional[str]:
    """
    Return a description of the first dependency violation in an ordered
    list, or None when every requirement is met.

    A required id created by some change must be created earlier, and no
    change may require an id an earlier change dropped.
    """
    created_by = {}
    for index, change in enumerate(changes):
        for identifier in change.creates:
            created_by.setdefault(identifier, index)
    dropped = set()
    for index, change in enumerate(changes):
        for identifier in change.requires:
            # a replaced object is required by its own drop before being created again
            if identifier in change.drops:
                continue
            if identifier in created_by and created_by[identifier] > index:
                return f"{change} requires {identifier} before it is created"
            if identifier in dropped and identifier not in change.drops:
                return f"{change} requires {identifier} after it was dropped"
        dropped.update(change.drops)
        dropped.difference_update(change.creates)
    return None
