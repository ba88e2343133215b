"""Foreground galaxy drawing: nebula auras, similarity links, and artist stars."""

import logging
import math
from dataclasses import dataclass
from typing import Any

from .config import LINK_COLOR, NEBULA_COLOR, NODE_MAX_RADIUS, NODE_MIN_RADIUS
from .graph import Graph, GraphNode
from .scene import BLEND_ADD, Container, Graphics, SceneGraph, Sprite

logger = logging.getLogger(__name__)

GLOW_ALPHA = 0.3
GLOW_SIZE = 6
HOVER_ALPHA = 0.7
LABEL_SIZE = 10
MIN_HIT_RADIUS = 6.0
SMALLEST_RADIUS = 2.0


def node_radius(popularity: float, max_popularity: float) -> float:
    """Scale popularity above 50 into the star radius range."""
    spread = max(max_popularity - 50, 1)
    radius = NODE_MIN_RADIUS + (NODE_MAX_RADIUS - NODE_MIN_RADIUS) * ((popularity - 50) / spread)
    return max(SMALLEST_RADIUS, radius)


def link_style(weight: float) -> tuple[float, float]:
    """Stroke width and alpha for a link; both grow with similarity."""
    return weight * 2 + 0.5, weight * 0.3 + 0.1


def nebula_pulse(t: float) -> float:
    """Global breathing factor in [0.85, 1.0]."""
    return 0.85 + 0.15 * (0.5 + 0.5 * math.sin(t * 0.8))


def nebula_shape(node: GraphNode, degree: int, t: float) -> tuple[float, float]:
    """Radius and alpha of a node's aura; only meaningful when degree >= 1."""
    base = 25 + degree * 6 + max(0, node.artist.popularity - 50) * 0.25
    shimmer = 2 * math.sin((node.x + node.y + t * 20) * 0.002)
    radius = (base + shimmer) * (0.9 + 0.2 * nebula_pulse(t))
    alpha = min(0.08 + degree * 0.008, 0.25)
    return radius, alpha


@dataclass
class StarSprite:
    node: GraphNode
    body: Container
    core: Graphics
    glow: Sprite
    radius: float
    color: int


class GalaxyRenderer:
    """Owns the foreground display objects inside the camera container.

    Display objects are indexed by artist id and updated incrementally when
    the graph changes.
    """

    def __init__(self, scene: SceneGraph, camera_layer: Container, graph: Graph, nebula_blur: int) -> None:
        self.scene = scene
        self.nebula_layer = scene.container()
        self.nebula_layer.blend_mode = BLEND_ADD
        self.nebula_layer.blur = nebula_blur
        self.nebulas: Graphics = scene.graphics()
        self.nebula_layer.add_child(self.nebulas)
        self.links: Graphics = scene.graphics()
        self.glow_layer = scene.container()
        self.node_layer = scene.container()
        for layer in (self.nebula_layer, self.links, self.glow_layer, self.node_layer):
            camera_layer.add_child(layer)

        self.glow_texture = scene.radial_texture()
        self.sprites: dict[str, StarSprite] = {}
        self.graph = Graph(nodes=[], edges=[])
        self.degree: dict[str, int] = {}
        self.hovered: str | None = None
        self.set_graph(graph)

    def set_graph(self, graph: Graph) -> None:
        """Sync sprites with a new node set: drop departed ids, add new ones, rebind the rest."""
        max_popularity = max((node.artist.popularity for node in graph.nodes), default=100) or 100
        incoming = {node.id: node for node in graph.nodes}

        for node_id in [node_id for node_id in self.sprites if node_id not in incoming]:
            star = self.sprites.pop(node_id)
            star.body.destroy()
            star.glow.destroy()

        for node in graph.nodes:
            star = self.sprites.get(node.id)
            radius = node_radius(node.artist.popularity, max_popularity)
            if star is None:
                self.sprites[node.id] = self._create_star(node, radius)
            else:
                star.node = node
                if star.radius != radius or star.color != node.color:
                    self._restyle_star(star, radius, node.color)

        self.graph = graph
        self.degree = graph.degree()
        if self.hovered not in self.sprites:
            self.hovered = None
        logger.debug("Renderer synced: %d stars, %d links", len(self.sprites), len(graph.edges))

    def _create_star(self, node: GraphNode, radius: float) -> StarSprite:
        glow = self.scene.sprite(self.glow_texture)
        glow.tint = node.color
        glow.alpha = GLOW_ALPHA
        glow.width = radius * GLOW_SIZE
        glow.height = radius * GLOW_SIZE
        glow.set_anchor(0.5)
        self.glow_layer.add_child(glow)

        body = self.scene.container()
        core = self.scene.graphics()
        core.circle(0, 0, radius * 0.5, node.color)
        body.add_child(core)
        label = self.scene.text(node.artist.name.upper(), size=LABEL_SIZE)
        label.set_anchor(0.5, -1.5)
        body.add_child(label)
        self.node_layer.add_child(body)
        return StarSprite(node=node, body=body, core=core, glow=glow, radius=radius, color=node.color)

    def _restyle_star(self, star: StarSprite, radius: float, color: int) -> None:
        """Redraw the core and resize the glow after popularity or genre colour changed."""
        star.radius = radius
        star.color = color
        star.core.clear()
        star.core.circle(0, 0, radius * 0.5, color)
        star.glow.tint = color
        star.glow.width = radius * GLOW_SIZE
        star.glow.height = radius * GLOW_SIZE

    def draw(self, t: float) -> None:
        """Redraw auras, links and star positions for elapsed time ``t`` seconds."""
        self.nebulas.clear()
        for node in self.graph.nodes:
            degree = self.degree.get(node.id, 0)
            if degree <= 0:
                continue
            radius, alpha = nebula_shape(node, degree, t)
            self.nebulas.circle(node.x, node.y, radius, NEBULA_COLOR, alpha)

        positions = {node_id: star.node.display_position(t) for node_id, star in self.sprites.items()}

        self.links.clear()
        for edge in self.graph.edges:
            source = positions.get(edge.source)
            target = positions.get(edge.target)
            if source is None or target is None:
                continue
            width, alpha = link_style(edge.weight)
            self.links.line(source[0], source[1], target[0], target[1], width, LINK_COLOR, alpha)

        for node_id, star in self.sprites.items():
            x, y = positions[node_id]
            star.body.x, star.body.y = x, y
            star.glow.x, star.glow.y = x, y
            star.body.alpha = HOVER_ALPHA if node_id == self.hovered else 1.0

    def node_at(self, wx: float, wy: float, t: float) -> GraphNode | None:
        """Topmost star whose core contains the world point."""
        for star in reversed(list(self.sprites.values())):
            x, y = star.node.display_position(t)
            reach = max(star.radius * 0.5, MIN_HIT_RADIUS)
            if (wx - x) ** 2 + (wy - y) ** 2 <= reach * reach:
                return star.node
        return None

    def set_hover(self, node_id: str | None) -> None:
        self.hovered = node_id if node_id in self.sprites else None

    def dispose(self) -> None:
        for star in self.sprites.values():
            star.body.destroy()
            star.glow.destroy()
        self.sprites.clear()
        for layer in (self.nebula_layer, self.links, self.glow_layer, self.node_layer):
            layer.destroy()
        self.glow_texture.destroy()


def tooltip(node: GraphNode) -> dict[str, Any]:
    """Hover card contents for a star."""
    return {
        "id": node.id,
        "name": node.artist.name,
        "genres": list(node.artist.genres),
        "url": node.artist.spotify_url,
    }
