# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

from collections import deque
from typing import List, Dict, Set, Optional, Sequence

from .steps import Step

# Observer bits
from ..observers.dispatcher import EventBus
from ..observers.events import PlanComputed, PlanFailed, new_ctx


class UnknownDependencyError(ValueError):
    pass


class CyclicDependencyError(ValueError):
    pass


class OrderingError(ValueError):
    pass


def _validate_dependencies(steps: Sequence[Step]) -> None:
    names: Set[str] = set()
    for s in steps:
        if s.name in names:
            raise ValueError(f"Duplicate step name '{s.name}'")
        names.add(s.name)
    for s in steps:
        for d in s.after:
            if d not in names:
                raise UnknownDependencyError(
                    f"Step '{s.name}' depends on unknown step '{d}'"
                )


def plan(
    steps: Sequence[Step],
    bus: Optional[EventBus] = None,
    run_ctx: Optional[dict] = None,
    *,
    strict: bool = True,
) -> List[Step]:
    """
    Stable topological sort of steps based on 'after'. Ties are broken by
    declaration order, so a correctly declared pipeline comes back unchanged.

    With *strict* (the default) a declared order that would have to be
    rearranged is rejected instead: the pipeline is fixed-order by design.
    Emits PlanComputed / PlanFailed if an EventBus is provided.
    """
    ctx = run_ctx or new_ctx(host=None)
    try:
        _validate_dependencies(steps)

        position: Dict[str, int] = {s.name: i for i, s in enumerate(steps)}
        by_name: Dict[str, Step] = {s.name: s for s in steps}
        indeg: Dict[str, int] = {s.name: len(set(s.after)) for s in steps}
        dependents: Dict[str, List[str]] = {s.name: [] for s in steps}
        for s in steps:
            for d in set(s.after):
                dependents[d].append(s.name)

        queue = deque(sorted((n for n, deg in indeg.items() if deg == 0), key=position.get))
        order: List[Step] = []

        while queue:
            n = queue.popleft()
            order.append(by_name[n])
            for m in dependents[n]:
                indeg[m] -= 1
                if indeg[m] == 0:
                    queue.append(m)
            queue = deque(sorted(queue, key=position.get))  # deterministic

        if len(order) != len(steps):
            raise CyclicDependencyError("Cyclic dependency detected among steps")

        if strict and [s.name for s in order] != [s.name for s in steps]:
            raise OrderingError(
                "Declared step order violates dependencies; expected "
                + " -> ".join(s.name for s in order)
            )

        if bus:
            bus.emit(PlanComputed(order=[s.name for s in order], **ctx))
        return order

    except Exception as e:
        if bus:
            bus.emit(PlanFailed(error=str(e), **ctx))
        raise
