"""Step dependency graph for the assembly state machine.

Edges point from a step to the steps whose results are computed from it.
Going back to a step clears everything reachable from it in this graph,
while the step's own choice is kept so the user can revise it.

    TYPE_SELECT    -> FOCUS_SELECT, STAT_ALLOCATION, ABILITY_SELECT,
                      CYPHER_SELECT, EQUIPMENT_SHOP
    ORIGIN_SELECT  -> STAT_ALLOCATION, EQUIPMENT_SHOP

Focus suitability, the bonus allotment, tier-1 options, the cypher limit
and starting shins all come from the type; the origin changes pool
modifiers, the allotment (species) and starting shins.
"""

from __future__ import annotations

from collections import defaultdict, deque
from collections.abc import Iterable, Mapping

from numenera_chargen.models.constants import Step


DEFAULT_EDGES: Mapping[Step, tuple[Step, ...]] = {
    Step.TYPE_SELECT: (
        Step.FOCUS_SELECT,
        Step.STAT_ALLOCATION,
        Step.ABILITY_SELECT,
        Step.CYPHER_SELECT,
        Step.EQUIPMENT_SHOP,
    ),
    Step.ORIGIN_SELECT: (
        Step.STAT_ALLOCATION,
        Step.EQUIPMENT_SHOP,
    ),
}


class StepGraph:
    """DAG over Step values with forward/reverse adjacency."""

    __slots__ = ("_deps", "_reverse_deps")

    def __init__(self) -> None:
        self._deps: dict[Step, list[Step]] = defaultdict(list)
        self._reverse_deps: dict[Step, list[Step]] = defaultdict(list)

    @classmethod
    def build(
        cls, edges: Mapping[Step, Iterable[Step]] | None = None
    ) -> StepGraph:
        """Build the graph, rejecting edges that point backwards in step order."""
        graph = cls()
        for source, targets in (DEFAULT_EDGES if edges is None else edges).items():
            for target in targets:
                if target <= source:
                    raise ValueError(
                        f"Step {source.name} cannot invalidate earlier step {target.name}"
                    )
                if target not in graph._deps[source]:
                    graph._deps[source].append(target)
                if source not in graph._reverse_deps[target]:
                    graph._reverse_deps[target].append(source)
        return graph

    def dependents_of(self, step: Step) -> list[Step]:
        """Direct dependents of *step*."""
        return list(self._deps.get(step, []))

    def prerequisites_of(self, step: Step) -> list[Step]:
        return list(self._reverse_deps.get(step, []))

    def invalidated_by(self, step: Step) -> list[Step]:
        """Every step reachable from *step* (excluding itself), in step order."""
        seen: set[Step] = set()
        queue: deque[Step] = deque(self._deps.get(step, []))
        while queue:
            current = queue.popleft()
            if current in seen:
                continue
            seen.add(current)
            queue.extend(self._deps.get(current, []))
        return sorted(seen)

    def topological_order(self) -> list[Step]:
        """All steps, prerequisites before dependents (Kahn's algorithm)."""
        in_degree = {step: len(self._reverse_deps.get(step, [])) for step in Step}
        queue: deque[Step] = deque(s for s in Step if in_degree[s] == 0)
        result: list[Step] = []
        while queue:
            step = queue.popleft()
            result.append(step)
            for dependent in self._deps.get(step, []):
                in_degree[dependent] -= 1
                if in_degree[dependent] == 0:
                    queue.append(dependent)
        return result
