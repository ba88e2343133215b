"""Force-directed layout: the simulation capability and its d3-style implementation.

The engine owns node positions and velocities. Each tick gathers them into
``Bodies`` arrays, lets every force adjust velocities (centering translates
positions instead), integrates with velocity decay while honoring pinned
nodes, then writes the result back onto the ``GraphNode`` objects. Alpha
cools geometrically toward ``alpha_target`` and the simulation stops once
both drop below ``alpha_min``.
"""

import logging
import random
from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass

import numpy as np

from .config import ForceSettings
from .graph import GraphEdge, GraphNode

logger = logging.getLogger(__name__)

TickCallback = Callable[[], None]


def jiggle(rng: random.Random) -> float:
    """Tiny random offset used to separate coincident nodes."""
    return (rng.random() - 0.5) * 1e-6


def jiggle_zeros(values: np.ndarray, rng: random.Random) -> np.ndarray:
    """Replace exact zeros in place so no direction is undefined."""
    zeros = values == 0
    count = int(zeros.sum())
    if count:
        values[zeros] = [jiggle(rng) for _ in range(count)]
    return values


@dataclass
class Bodies:
    """Position and velocity rows in node order, shape ``(n, 2)`` each."""

    position: np.ndarray
    velocity: np.ndarray

    @classmethod
    def gather(cls, nodes: list[GraphNode]) -> "Bodies":
        position = np.array([(node.x, node.y) for node in nodes], dtype=float).reshape(-1, 2)
        velocity = np.array([(node.vx, node.vy) for node in nodes], dtype=float).reshape(-1, 2)
        return cls(position, velocity)

    def scatter(self, nodes: list[GraphNode]) -> None:
        for node, (x, y), (vx, vy) in zip(nodes, self.position.tolist(), self.velocity.tolist()):
            node.x, node.y = x, y
            node.vx, node.vy = vx, vy


class Force(ABC):
    """One force term applied each tick."""

    def initialize(self, nodes: list[GraphNode], rng: random.Random) -> None:
        self.nodes = nodes
        self.rng = rng

    @abstractmethod
    def apply(self, bodies: Bodies, alpha: float) -> None:
        ...


class LinkForce(Force):
    """Springs between edge endpoints toward a target distance."""

    def __init__(self, edges: list[GraphEdge], distance: float, strength_scale: float) -> None:
        self.edges = edges
        self.distance = distance
        self.strength_scale = strength_scale
        self.sources = np.zeros(0, dtype=int)
        self.targets = np.zeros(0, dtype=int)
        self.strengths = np.zeros(0)
        self.bias = np.zeros(0)

    def initialize(self, nodes: list[GraphNode], rng: random.Random) -> None:
        super().initialize(nodes, rng)
        index = {node.id: i for i, node in enumerate(nodes)}
        sources: list[int] = []
        targets: list[int] = []
        strengths: list[float] = []
        for edge in self.edges:
            if edge.source not in index or edge.target not in index:
                logger.debug("Skipping edge with unknown endpoint: %s-%s", edge.source, edge.target)
                continue
            sources.append(index[edge.source])
            targets.append(index[edge.target])
            strengths.append(edge.weight * self.strength_scale)

        self.sources = np.array(sources, dtype=int)
        self.targets = np.array(targets, dtype=int)
        self.strengths = np.array(strengths, dtype=float)
        # Bias splits the correction so lower-degree endpoints move more.
        counts = np.bincount(np.concatenate([self.sources, self.targets]), minlength=len(nodes))
        self.bias = counts[self.sources] / (counts[self.sources] + counts[self.targets])

    def apply(self, bodies: Bodies, alpha: float) -> None:
        if not len(self.sources):
            return
        ahead = bodies.position + bodies.velocity
        delta = jiggle_zeros(ahead[self.targets] - ahead[self.sources], self.rng)
        length = np.hypot(delta[:, 0], delta[:, 1])
        delta *= ((length - self.distance) / length * alpha * self.strengths)[:, None]
        np.add.at(bodies.velocity, self.targets, -delta * self.bias[:, None])
        np.add.at(bodies.velocity, self.sources, delta * (1 - self.bias)[:, None])


class ManyBodyForce(Force):
    """Pairwise charge; negative strength repels. Pairs beyond distance_max are ignored."""

    def __init__(self, strength: float, distance_max: float, distance_min: float = 1.0) -> None:
        self.strength = strength
        self.distance_max2 = distance_max * distance_max
        self.distance_min2 = distance_min * distance_min

    def apply(self, bodies: Bodies, alpha: float) -> None:
        count = len(bodies.position)
        if count < 2:
            return
        first, second = np.triu_indices(count, k=1)
        delta = bodies.position[second] - bodies.position[first]
        in_range = (delta * delta).sum(axis=1) < self.distance_max2
        first, second, delta = first[in_range], second[in_range], delta[in_range]
        if not len(first):
            return

        delta = jiggle_zeros(delta, self.rng)
        dist2 = (delta * delta).sum(axis=1)
        close = dist2 < self.distance_min2
        dist2[close] = np.sqrt(self.distance_min2 * dist2[close])
        push = delta * (self.strength * alpha / dist2)[:, None]
        np.add.at(bodies.velocity, first, push)
        np.add.at(bodies.velocity, second, -push)


class CenterForce(Force):
    """Translates all nodes so their mean sits on the center point."""

    def __init__(self, cx: float, cy: float, strength: float = 1.0) -> None:
        self.center = np.array([cx, cy], dtype=float)
        self.strength = strength

    def apply(self, bodies: Bodies, alpha: float) -> None:
        if not len(bodies.position):
            return
        bodies.position -= (bodies.position.mean(axis=0) - self.center) * self.strength


class AxisForce(Force):
    """Weak spring pulling every node toward a coordinate on one axis."""

    def __init__(self, axis: str, target: float, strength: float) -> None:
        if axis not in ("x", "y"):
            raise ValueError(f"Unknown axis: {axis}")
        self.axis = axis
        self.column = 0 if axis == "x" else 1
        self.target = target
        self.strength = strength

    def apply(self, bodies: Bodies, alpha: float) -> None:
        column = self.column
        bodies.velocity[:, column] += (self.target - bodies.position[:, column]) * self.strength * alpha


class ForceSimulation(ABC):
    """Capability the visualization depends on for node layout."""

    @abstractmethod
    def set_graph(self, nodes: list[GraphNode], edges: list[GraphEdge]) -> None:
        ...

    @abstractmethod
    def tick(self) -> None:
        ...

    @abstractmethod
    def on_tick(self, callback: TickCallback) -> None:
        ...

    @abstractmethod
    def off_tick(self, callback: TickCallback) -> None:
        ...

    @abstractmethod
    def pin(self, node_id: str, x: float, y: float) -> None:
        ...

    @abstractmethod
    def unpin(self, node_id: str) -> None:
        ...

    @property
    @abstractmethod
    def running(self) -> bool:
        ...

    @abstractmethod
    def restart(self) -> None:
        ...

    @abstractmethod
    def stop(self) -> None:
        ...

    @abstractmethod
    def dispose(self) -> None:
        ...

    def step(self) -> bool:
        """Tick once if still warm; returns whether a tick happened."""
        if not self.running:
            return False
        self.tick()
        return True


class ForceLayout(ForceSimulation):
    """Link, charge, center and axis forces with an alpha cooling schedule."""

    def __init__(
        self,
        nodes: list[GraphNode],
        edges: list[GraphEdge],
        width: float,
        height: float,
        settings: ForceSettings | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self.settings = settings or ForceSettings()
        self.rng = rng or random.Random()
        self.width = width
        self.height = height
        self.alpha = 1.0
        self.alpha_target = 0.0
        self.alpha_decay = 1 - self.settings.alpha_min ** (1 / 300)
        self.nodes: list[GraphNode] = []
        self.edges: list[GraphEdge] = []
        self.forces: dict[str, Force] = {}
        self._by_id: dict[str, GraphNode] = {}
        self._listeners: list[TickCallback] = []
        self._stopped = False
        self.tick_count = 0
        self.set_graph(nodes, edges)

    def _build_forces(self) -> None:
        s = self.settings
        cx, cy = self.width / 2, self.height / 2
        self.forces = {
            "link": LinkForce(self.edges, s.link_distance, s.link_strength_scale),
            "charge": ManyBodyForce(s.charge_strength, s.charge_distance_max),
            "center": CenterForce(cx, cy),
            "x": AxisForce("x", cx, s.center_strength),
            "y": AxisForce("y", cy, s.center_strength),
        }
        for force in self.forces.values():
            force.initialize(self.nodes, self.rng)

    def set_graph(self, nodes: list[GraphNode], edges: list[GraphEdge]) -> None:
        """Swap in a new node/edge set, keeping positions of nodes seen before, and reheat."""
        for node in nodes:
            previous = self._by_id.get(node.id)
            if previous is not None and previous is not node:
                node.x, node.y = previous.x, previous.y
                node.vx, node.vy = previous.vx, previous.vy
                node.fx, node.fy = previous.fx, previous.fy

        self.nodes = list(nodes)
        self.edges = list(edges)
        self._by_id = {node.id: node for node in self.nodes}
        self._build_forces()
        if self.tick_count:
            self.alpha = max(self.alpha, 0.3)
        # A pinned node that left the graph no longer holds the layout warm.
        pinned = any(node.pinned for node in self.nodes)
        self.alpha_target = self.settings.drag_alpha_target if pinned else 0.0
        self.restart()

    def add_force(self, name: str, force: Force) -> None:
        force.initialize(self.nodes, self.rng)
        self.forces[name] = force

    def remove_force(self, name: str) -> None:
        self.forces.pop(name, None)

    def node(self, node_id: str) -> GraphNode | None:
        return self._by_id.get(node_id)

    @property
    def running(self) -> bool:
        alpha_min = self.settings.alpha_min
        return not self._stopped and (self.alpha >= alpha_min or self.alpha_target >= alpha_min)

    def restart(self) -> None:
        self._stopped = False

    def stop(self) -> None:
        self._stopped = True

    def tick(self) -> None:
        """Advance the simulation one step and notify subscribers."""
        self.alpha += (self.alpha_target - self.alpha) * self.alpha_decay
        bodies = Bodies.gather(self.nodes)
        for force in self.forces.values():
            force.apply(bodies, self.alpha)

        fixed = np.array(
            [(np.nan if node.fx is None else node.fx, np.nan if node.fy is None else node.fy) for node in self.nodes],
            dtype=float,
        ).reshape(-1, 2)
        free = np.isnan(fixed)
        bodies.velocity[free] *= 1 - self.settings.velocity_decay
        bodies.position[free] += bodies.velocity[free]
        bodies.position[~free] = fixed[~free]
        bodies.velocity[~free] = 0.0
        bodies.scatter(self.nodes)

        self.tick_count += 1
        for callback in list(self._listeners):
            callback()

    def on_tick(self, callback: TickCallback) -> None:
        if callback not in self._listeners:
            self._listeners.append(callback)

    def off_tick(self, callback: TickCallback) -> None:
        if callback in self._listeners:
            self._listeners.remove(callback)

    def pin(self, node_id: str, x: float, y: float) -> None:
        node = self._by_id.get(node_id)
        if node is None:
            return
        node.fx = x
        node.fy = y
        self.alpha_target = self.settings.drag_alpha_target
        self.restart()

    def unpin(self, node_id: str) -> None:
        node = self._by_id.get(node_id)
        if node is None:
            return
        node.fx = None
        node.fy = None
        if not any(other.pinned for other in self.nodes):
            self.alpha_target = 0.0

    def dispose(self) -> None:
        self._listeners.clear()
        self.stop()
