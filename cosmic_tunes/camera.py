"""Pan/zoom camera applied to the foreground container at render time."""

from .config import MAX_ZOOM, MIN_ZOOM, ZOOM_STEP
from .scene import Container


class Camera:
    """Drives a container's position, pivot and scale from pointer input.

    Screen = position + zoom * (world - pivot). Node coordinates in world
    space are never touched.
    """

    def __init__(
        self,
        container: Container,
        width: float,
        height: float,
        min_zoom: float = MIN_ZOOM,
        max_zoom: float = MAX_ZOOM,
        zoom_step: float = ZOOM_STEP,
    ) -> None:
        self.container = container
        self.min_zoom = min_zoom
        self.max_zoom = max_zoom
        self.zoom_step = zoom_step
        self.panning = False
        self._pan_start = (0.0, 0.0)
        self.reset(width, height)

    def reset(self, width: float, height: float) -> None:
        """Center on the middle of the screen at zoom 1."""
        cx, cy = width / 2, height / 2
        self.container.set_scale(1.0)
        self.container.pivot_x, self.container.pivot_y = cx, cy
        self.container.x, self.container.y = cx, cy
        self.panning = False

    @property
    def zoom_level(self) -> float:
        return self.container.scale_x

    @property
    def x(self) -> float:
        return self.container.x

    @property
    def y(self) -> float:
        return self.container.y

    def screen_to_world(self, sx: float, sy: float) -> tuple[float, float]:
        c = self.container
        return (sx - c.x) / c.scale_x + c.pivot_x, (sy - c.y) / c.scale_y + c.pivot_y

    def world_to_screen(self, wx: float, wy: float) -> tuple[float, float]:
        c = self.container
        return c.x + (wx - c.pivot_x) * c.scale_x, c.y + (wy - c.pivot_y) * c.scale_y

    def zoom(self, delta_y: float, sx: float, sy: float) -> float:
        """Zoom one wheel step about the cursor; negative delta zooms in."""
        if delta_y == 0:
            return self.zoom_level
        factor = self.zoom_step if delta_y < 0 else 1 / self.zoom_step
        new_zoom = max(self.min_zoom, min(self.max_zoom, self.zoom_level * factor))

        # Resolve the anchor with the old transform so it stays under the cursor.
        wx, wy = self.screen_to_world(sx, sy)
        self.container.set_scale(new_zoom)
        self.container.pivot_x, self.container.pivot_y = wx, wy
        self.container.x, self.container.y = sx, sy
        return new_zoom

    def start_pan(self, sx: float, sy: float) -> bool:
        if self.panning:
            return False
        self.panning = True
        self._pan_start = (sx - self.container.x, sy - self.container.y)
        return True

    def move_pan(self, sx: float, sy: float) -> None:
        if not self.panning:
            return
        self.container.x = sx - self._pan_start[0]
        self.container.y = sy - self._pan_start[1]

    def end_pan(self) -> None:
        self.panning = False
