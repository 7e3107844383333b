# dag.py
from __future__ import annotations

import heapq
import logging
from dataclasses import dataclass
from typing import Dict, List, Sequence, Set

from .errors import CircularDependencyError, ConfigError, MissingDependencyError
from .model import Step

logger = logging.getLogger(__name__)

_UNVISITED, _IN_PROGRESS, _DONE = 0, 1, 2


@dataclass
class Graph:
    """
    Dependency graph over step names.

      order: names in declaration order (used for tie-breaks)
      adj:   dependency -> dependents (edge A -> B when B depends_on A)
      indeg: number of dependencies per step
    """
    order: List[str]
    adj: Dict[str, Set[str]]
    indeg: Dict[str, int]

    def __len__(self) -> int:
        return len(self.order)


def build_graph(steps: Sequence[Step]) -> Graph:
    """
    Build a DAG from Step objects.

    Requires:
      - step.name: str (unique within the list)
      - step.depends_on: names of steps that must run BEFORE this step

    Raises ConfigError on duplicate names, MissingDependencyError on unknown
    references and CircularDependencyError if the graph has a cycle.
    """
    names = [s.name for s in steps]
    if len(set(names)) != len(names):
        dupes = sorted({n for n in names if names.count(n) > 1})
        raise ConfigError(f"Duplicate step names found: {dupes}")

    name_set = set(names)
    adj: Dict[str, Set[str]] = {n: set() for n in names}
    indeg: Dict[str, int] = {n: 0 for n in names}

    for step in steps:
        for dep in step.depends_on:
            if dep not in name_set:
                raise MissingDependencyError(step.name, dep, names)
            # Edge dep -> step.name (dep must run before step)
            if step.name not in adj[dep]:
                adj[dep].add(step.name)
                indeg[step.name] += 1

    graph = Graph(order=names, adj=adj, indeg=indeg)
    _check_acyclic(graph, steps)
    logger.debug("Built dependency graph: %d steps, %d edges", len(names), sum(indeg.values()))
    return graph


def _check_acyclic(graph: Graph, steps: Sequence[Step]) -> None:
    """Three-colour DFS over depends_on; an in-progress hit is a cycle."""
    deps = {s.name: list(s.depends_on) for s in steps}
    state = {n: _UNVISITED for n in graph.order}

    for root in graph.order:
        if state[root] != _UNVISITED:
            continue
        # iterative DFS so deep chains don't hit the recursion limit
        path: List[str] = [root]
        stack = [(root, iter(deps[root]))]
        state[root] = _IN_PROGRESS

        while stack:
            node, it = stack[-1]
            nxt = next(it, None)
            if nxt is None:
                state[node] = _DONE
                stack.pop()
                path.pop()
                continue
            if state[nxt] == _IN_PROGRESS:
                cycle = path[path.index(nxt):] + [nxt]
                logger.debug("Cycle found: %s", " -> ".join(cycle))
                raise CircularDependencyError(cycle)
            if state[nxt] == _UNVISITED:
                state[nxt] = _IN_PROGRESS
                path.append(nxt)
                stack.append((nxt, iter(deps[nxt])))


def schedule(graph: Graph) -> List[str]:
    """
    Kahn's algorithm with a declaration-order tie-break.

    Among every step whose dependencies are all scheduled, the one declared
    earliest goes next, so identical input always yields the same plan.
    """
    position = {name: i for i, name in enumerate(graph.order)}
    indeg = dict(graph.indeg)  # copy (we mutate it)
    ready = [position[n] for n in graph.order if indeg[n] == 0]
    heapq.heapify(ready)

    plan: List[str] = []
    while ready:
        node = graph.order[heapq.heappop(ready)]
        plan.append(node)
        for child in graph.adj[node]:
            indeg[child] -= 1
            if indeg[child] == 0:
                heapq.heappush(ready, position[child])

    if len(plan) != len(graph.order):
        # build_graph already rejects cycles; a hand-made Graph may not
        stuck = [n for n in graph.order if indeg[n] > 0]
        raise CircularDependencyError(stuck)

    return plan


def plan_steps(steps: Sequence[Step]) -> List[Step]:
    """Return the steps in execution order."""
    by_name = {s.name: s for s in steps}
    order = schedule(build_graph(steps))
    logger.debug("Execution plan: %s", order)
    return [by_name[n] for n in order]
