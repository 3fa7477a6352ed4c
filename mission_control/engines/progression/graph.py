"""
Mission Graph Model - missions plus prerequisite edges for one campaign.

A MissionGraph is never mutated after construction. Edits go through
``with_dependency`` / ``without_dependency``, which build and validate a new graph.
"""

import uuid
from enum import IntEnum
from typing import Dict, FrozenSet, Iterable, List, Optional, Tuple

from mission_control.engines.progression.errors import (
    CycleDetectedError,
    DanglingEdgeError,
    DuplicateMissionError,
    UnknownMissionError,
)
from mission_control.engines.progression.types import Mission, MissionDependency


class _Color(IntEnum):
    WHITE = 0  # unvisited
    GRAY = 1  # on the current DFS path
    BLACK = 2  # finished


class MissionGraph:
    """
    Adjacency structure for one campaign.

    The constructor only indexes its input. Use ``build_graph`` to get a graph that
    is guaranteed to be acyclic and free of dangling edges.
    """

    def __init__(self, missions: Iterable[Mission], dependencies: Iterable[MissionDependency]):
        self._missions: Dict[uuid.UUID, Mission] = {}
        for mission in missions:
            self._missions[mission.id] = mission

        prerequisites: Dict[uuid.UUID, set] = {mid: set() for mid in self._missions}
        dependents: Dict[uuid.UUID, set] = {mid: set() for mid in self._missions}
        edges = []
        seen = set()
        for dep in dependencies:
            key = (dep.source_mission_id, dep.target_mission_id)
            if key in seen:
                continue
            seen.add(key)
            edges.append(dep)
            prerequisites.setdefault(dep.target_mission_id, set()).add(dep.source_mission_id)
            dependents.setdefault(dep.source_mission_id, set()).add(dep.target_mission_id)

        self._dependencies: Tuple[MissionDependency, ...] = tuple(edges)
        self._prerequisites: Dict[uuid.UUID, FrozenSet[uuid.UUID]] = {
            k: frozenset(v) for k, v in prerequisites.items()
        }
        self._dependents: Dict[uuid.UUID, FrozenSet[uuid.UUID]] = {
            k: frozenset(v) for k, v in dependents.items()
        }

    def __len__(self) -> int:
        return len(self._missions)

    def __contains__(self, mission_id: object) -> bool:
        return mission_id in self._missions

    def __iter__(self):
        return iter(self._missions.values())

    @property
    def missions(self) -> Dict[uuid.UUID, Mission]:
        return dict(self._missions)

    @property
    def dependencies(self) -> Tuple[MissionDependency, ...]:
        return self._dependencies

    def mission(self, mission_id: uuid.UUID) -> Mission:
        try:
            return self._missions[mission_id]
        except KeyError:
            raise UnknownMissionError(mission_id) from None

    def prerequisites_of(self, mission_id: uuid.UUID) -> FrozenSet[uuid.UUID]:
        """Missions that must be COMPLETED before ``mission_id`` is reachable."""
        if mission_id not in self._missions:
            raise UnknownMissionError(mission_id)
        return self._prerequisites.get(mission_id, frozenset())

    def dependents_of(self, mission_id: uuid.UUID) -> FrozenSet[uuid.UUID]:
        """Missions that list ``mission_id`` as a prerequisite."""
        if mission_id not in self._missions:
            raise UnknownMissionError(mission_id)
        return self._dependents.get(mission_id, frozenset())

    def roots(self) -> List[uuid.UUID]:
        """Entry points: missions without prerequisites."""
        return [mid for mid in self._missions if not self._prerequisites.get(mid)]

    def leaves(self) -> List[uuid.UUID]:
        """Dead ends: missions nothing depends on."""
        return [mid for mid in self._missions if not self._dependents.get(mid)]

    def find_dangling_edge(self) -> Optional[Tuple[MissionDependency, uuid.UUID]]:
        for dep in self._dependencies:
            for endpoint in (dep.source_mission_id, dep.target_mission_id):
                if endpoint not in self._missions:
                    return dep, endpoint
        return None

    def find_cycle(self) -> Optional[List[uuid.UUID]]:
        """
        White/gray/black DFS. Returns the first cycle found as a closed path
        (first id repeated at the end), or None.

        Iterative so deep chains do not hit the recursion limit.
        """
        color: Dict[uuid.UUID, _Color] = {mid: _Color.WHITE for mid in self._missions}

        for start in self._missions:
            if color[start] != _Color.WHITE:
                continue
            path: List[uuid.UUID] = [start]
            stack = [(start, iter(sorted(self._dependents.get(start, ()), key=str)))]
            color[start] = _Color.GRAY

            while stack:
                node, children = stack[-1]
                advanced = False
                for child in children:
                    if child not in color:
                        continue  # dangling, reported separately
                    if color[child] == _Color.GRAY:
                        return path[path.index(child):] + [child]
                    if color[child] == _Color.WHITE:
                        color[child] = _Color.GRAY
                        path.append(child)
                        stack.append((child, iter(sorted(self._dependents.get(child, ()), key=str))))
                        advanced = True
                        break
                if not advanced:
                    color[node] = _Color.BLACK
                    path.pop()
                    stack.pop()
        return None

    def with_dependency(self, source_id: uuid.UUID, target_id: uuid.UUID) -> "MissionGraph":
        """New validated graph with one more edge. Raises GraphError on a cycle."""
        edge = MissionDependency(source_mission_id=source_id, target_mission_id=target_id)
        return build_graph(self._missions.values(), list(self._dependencies) + [edge])

    def without_dependency(self, source_id: uuid.UUID, target_id: uuid.UUID) -> "MissionGraph":
        remaining = [
            d for d in self._dependencies
            if (d.source_mission_id, d.target_mission_id) != (source_id, target_id)
        ]
        return build_graph(self._missions.values(), remaining)


def build_graph(
    missions: Iterable[Mission],
    dependencies: Iterable[MissionDependency],
) -> MissionGraph:
    """
    Build a validated graph.

    Raises:
        DuplicateMissionError: two missions share an id
        DanglingEdgeError: an edge references a mission outside ``missions``
        CycleDetectedError: the edges contain a directed cycle (self-loops included)
    """
    mission_list = list(missions)
    seen = set()
    for mission in mission_list:
        if mission.id in seen:
            raise DuplicateMissionError(mission.id)
        seen.add(mission.id)

    graph = MissionGraph(mission_list, dependencies)

    dangling = graph.find_dangling_edge()
    if dangling:
        dep, missing = dangling
        raise DanglingEdgeError(dep.source_mission_id, dep.target_mission_id, missing)

    cycle = graph.find_cycle()
    if cycle:
        raise CycleDetectedError(cycle)

    return graph
