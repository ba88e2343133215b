"""Visualization session: one owner for graph, layout, camera and drawing."""

import logging
import random
import threading
from collections.abc import Iterable
from pathlib import Path
from typing import Any

from PIL import Image

from .camera import Camera
from .config import FRAME_SECONDS, EffectSettings, ForceSettings
from .effects import ShootingStars, Starfield, apply_parallax, frames
from .graph import ArtistRecord, Graph, GraphNode, build_graph
from .layout import ForceLayout, ForceSimulation
from .render import GalaxyRenderer, tooltip
from .scene import PillowSceneGraph, SceneGraph

logger = logging.getLogger(__name__)


class GalaxyView:
    """Live galaxy created on mount and disposed on unmount.

    All node position writes happen inside ``advance`` or the pointer
    handlers; artist lists coming from other threads go through
    ``queue_artists`` and are applied on the next ``advance``.
    """

    def __init__(
        self,
        scene: SceneGraph,
        graph: Graph,
        width: int,
        height: int,
        force_settings: ForceSettings,
        effect_settings: EffectSettings,
        rng: random.Random,
    ) -> None:
        self.scene = scene
        self.width = width
        self.height = height
        self.rng = rng
        self.effect_settings = effect_settings
        self.elapsed = 0.0
        self.dragging: str | None = None
        self.disposed = False
        self._pending: list[ArtistRecord] | None = None
        self._pending_lock = threading.Lock()

        self.stage = scene.container()
        self.starfield = Starfield(scene, width, height, effect_settings.star_count, rng)
        self.shooting_stars = ShootingStars(scene, width, height, effect_settings, rng)
        self.camera_layer = scene.container()
        for layer in (self.starfield.layer, self.shooting_stars.layer, self.camera_layer):
            self.stage.add_child(layer)
        self.camera = Camera(self.camera_layer, width, height)

        self.graph = graph
        self.engine: ForceSimulation = ForceLayout(graph.nodes, graph.edges, width, height, force_settings, rng)
        self.renderer = GalaxyRenderer(scene, self.camera_layer, graph, effect_settings.nebula_blur)
        self.engine.on_tick(self._on_tick)
        self.renderer.draw(self.elapsed)

    @property
    def nodes(self) -> list[GraphNode]:
        return self.graph.nodes

    def _on_tick(self) -> None:
        self.renderer.draw(self.elapsed)

    def advance(self, dt: float = FRAME_SECONDS) -> None:
        """Run one animation frame of ``dt`` seconds."""
        if self.disposed:
            return
        self._apply_pending()
        self.elapsed += dt

        if not self.engine.step():
            # Cooled layout still wobbles.
            self.renderer.draw(self.elapsed)

        self.starfield.update(frames(dt))
        self.shooting_stars.update(dt)
        camera = self.camera.container
        apply_parallax(self.starfield.layer, camera, self.effect_settings.starfield_parallax, self.width, self.height)
        apply_parallax(
            self.shooting_stars.layer,
            camera,
            self.effect_settings.shooting_star_parallax,
            self.width,
            self.height,
        )

    def run(self, frame_count: int, dt: float = FRAME_SECONDS) -> None:
        for _ in range(frame_count):
            self.advance(dt)

    def replace_artists(self, artists: Iterable[ArtistRecord]) -> None:
        """Rebuild the graph for a new artist set; surviving stars keep their place."""
        graph = build_graph(artists, rng=self.rng)
        self.graph = graph
        self.engine.set_graph(graph.nodes, graph.edges)
        self.renderer.set_graph(graph)
        if self.dragging and self.dragging not in {node.id for node in graph.nodes}:
            self.dragging = None
        logger.info("Galaxy updated: %d artists, %d links", len(graph.nodes), len(graph.edges))

    def queue_artists(self, artists: Iterable[ArtistRecord]) -> None:
        """Thread-safe handoff; applied at the start of the next frame."""
        with self._pending_lock:
            self._pending = list(artists)

    def _apply_pending(self) -> None:
        with self._pending_lock:
            pending, self._pending = self._pending, None
        if pending is not None:
            self.replace_artists(pending)

    def node_at(self, sx: float, sy: float) -> GraphNode | None:
        wx, wy = self.camera.screen_to_world(sx, sy)
        return self.renderer.node_at(wx, wy, self.elapsed)

    def pointer_down(self, sx: float, sy: float) -> str | None:
        """Grab the star under the pointer, or start panning the camera."""
        node = self.node_at(sx, sy)
        if node is None:
            self.camera.start_pan(sx, sy)
            return None
        self.dragging = node.id
        wx, wy = self.camera.screen_to_world(sx, sy)
        self.engine.pin(node.id, wx, wy)
        return node.id

    def pointer_move(self, sx: float, sy: float) -> dict[str, Any] | None:
        """Drag, pan, or hover; returns tooltip data when hovering a star."""
        if self.dragging is not None:
            wx, wy = self.camera.screen_to_world(sx, sy)
            self.engine.pin(self.dragging, wx, wy)
            self.renderer.set_hover(None)
            return None
        if self.camera.panning:
            self.camera.move_pan(sx, sy)
            return None

        node = self.node_at(sx, sy)
        self.renderer.set_hover(node.id if node else None)
        return tooltip(node) if node else None

    def pointer_up(self) -> None:
        if self.dragging is not None:
            self.engine.unpin(self.dragging)
            self.dragging = None
        self.camera.end_pan()

    def wheel(self, delta_y: float, sx: float, sy: float) -> float:
        return self.camera.zoom(delta_y, sx, sy)

    def capture_frame(self) -> Image.Image:
        if self.disposed:
            raise RuntimeError("Visualization has been disposed.")
        return self.scene.extract(self.stage, self.width, self.height)

    def save_snapshot(self, path: Path) -> Path:
        self.capture_frame().save(path, format="PNG")
        logger.info("Saved galaxy snapshot to %s", path)
        return path

    def dispose(self) -> None:
        """Release listeners and display resources; safe to call more than once."""
        if self.disposed:
            return
        self.disposed = True
        self.engine.off_tick(self._on_tick)
        self.engine.dispose()
        self.renderer.dispose()
        self.starfield.dispose()
        self.shooting_stars.dispose()
        self.stage.destroy()
        with self._pending_lock:
            self._pending = None


def initialize_visualization(
    artists: Iterable[ArtistRecord],
    width: int = 1280,
    height: int = 800,
    scene: SceneGraph | None = None,
    force_settings: ForceSettings | None = None,
    effect_settings: EffectSettings | None = None,
    rng: random.Random | None = None,
) -> GalaxyView:
    """Build the graph for ``artists`` and wire up a ready-to-animate view."""
    rng = rng or random.Random()
    graph = build_graph(artists, rng=rng)
    return GalaxyView(
        scene=scene or PillowSceneGraph(),
        graph=graph,
        width=width,
        height=height,
        force_settings=force_settings or ForceSettings(),
        effect_settings=effect_settings or EffectSettings(),
        rng=rng,
    )
