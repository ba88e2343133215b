import pytest

from cosmic_tunes.camera import Camera
from cosmic_tunes.scene import Container


@pytest.fixture
def camera() -> Camera:
    return Camera(Container(), 800, 600)


def test_starts_centered_at_zoom_one(camera: Camera) -> None:
    assert camera.zoom_level == 1.0
    assert camera.screen_to_world(123, 45) == pytest.approx((123, 45))


@pytest.mark.parametrize("delta", [-100, 100])
def test_zoom_keeps_world_point_under_cursor(camera: Camera, delta: float) -> None:
    camera.start_pan(0, 0)
    camera.move_pan(-37, 58)
    camera.end_pan()
    camera.zoom(-1, 400, 300)

    cursor = (612.0, 97.0)
    before = camera.screen_to_world(*cursor)
    camera.zoom(delta, *cursor)

    assert camera.screen_to_world(*cursor) == pytest.approx(before, abs=1e-6)
    assert camera.world_to_screen(*before) == pytest.approx(cursor, abs=1e-6)
    assert camera.container.to_local(*cursor) == pytest.approx(before, abs=1e-6)


def test_zoom_in_and_out_steps(camera: Camera) -> None:
    assert camera.zoom(-1, 0, 0) == pytest.approx(1.1)
    assert camera.zoom(1, 0, 0) == pytest.approx(1.0)
    assert camera.zoom(0, 0, 0) == pytest.approx(1.0)


def test_zoom_is_clamped(camera: Camera) -> None:
    for _ in range(100):
        camera.zoom(-120, 250, 250)
    assert camera.zoom_level == 3.0

    for _ in range(100):
        camera.zoom(120, 250, 250)
    assert camera.zoom_level == 0.2


def test_pan_follows_pointer(camera: Camera) -> None:
    assert camera.start_pan(100, 100)
    camera.move_pan(150, 130)

    assert (camera.x, camera.y) == (450, 330)

    camera.end_pan()
    camera.move_pan(900, 900)
    assert (camera.x, camera.y) == (450, 330)


def test_only_one_pan_at_a_time(camera: Camera) -> None:
    assert camera.start_pan(0, 0) is True
    assert camera.start_pan(10, 10) is False
    camera.end_pan()
    assert camera.start_pan(10, 10) is True


def test_reset_recenters(camera: Camera) -> None:
    camera.zoom(-1, 10, 10)
    camera.start_pan(0, 0)

    camera.reset(1000, 500)

    assert camera.zoom_level == 1.0
    assert not camera.panning
    assert camera.world_to_screen(500, 250) == pytest.approx((500, 250))
