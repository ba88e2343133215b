import random
import threading

import pytest
from PIL import Image

from cosmic_tunes.config import EffectSettings
from cosmic_tunes.visualization import GalaxyView, initialize_visualization
from tests.support import make_artist


def make_view(artists) -> GalaxyView:
    return initialize_visualization(
        artists,
        width=400,
        height=300,
        effect_settings=EffectSettings(star_count=10),
        rng=random.Random(3),
    )


@pytest.fixture
def solo():
    view = make_view([make_artist("a", ["pop"], popularity=80)])
    yield view
    view.dispose()


def test_capture_frame_matches_canvas(solo: GalaxyView) -> None:
    solo.run(5)

    frame = solo.capture_frame()

    assert frame.size == (400, 300)
    assert frame.mode == "RGB"
    assert solo.elapsed == pytest.approx(5 / 60)


def test_empty_galaxy_still_animates() -> None:
    view = make_view([])
    view.run(3)

    assert view.nodes == []
    assert view.capture_frame().size == (400, 300)
    view.dispose()


def test_save_snapshot_writes_png(solo: GalaxyView, tmp_path) -> None:
    path = solo.save_snapshot(tmp_path / "galaxy.png")

    with Image.open(path) as image:
        assert image.format == "PNG"
        assert image.size == (400, 300)


class TestPointer:
    def star_on_screen(self, view: GalaxyView):
        node = view.nodes[0]
        return node, view.camera.world_to_screen(*node.display_position(view.elapsed))

    def test_drag_pins_star_under_pointer(self, solo: GalaxyView) -> None:
        solo.advance()
        node, (sx, sy) = self.star_on_screen(solo)

        assert solo.pointer_down(sx, sy) == "a"
        solo.pointer_move(sx + 40, sy + 10)
        solo.advance()

        assert (node.x, node.y) == pytest.approx(solo.camera.screen_to_world(sx + 40, sy + 10))
        assert solo.engine.alpha_target == pytest.approx(0.1)

        solo.pointer_up()
        assert node.fx is None and node.fy is None
        assert solo.dragging is None
        assert solo.engine.alpha_target == 0.0

    def test_drag_after_layout_settles(self, solo: GalaxyView) -> None:
        solo.run(400)
        assert not solo.engine.running
        node, (sx, sy) = self.star_on_screen(solo)

        solo.pointer_down(sx, sy)
        solo.pointer_move(sx + 100, sy + 50)
        solo.advance()
        solo.advance()

        assert (node.x, node.y) == pytest.approx(solo.camera.screen_to_world(sx + 100, sy + 50))

    def test_background_press_pans_camera(self) -> None:
        view = make_view([])

        assert view.pointer_down(10, 10) is None
        assert view.camera.panning
        view.pointer_move(30, 40)

        assert (view.camera.x, view.camera.y) == (220, 180)
        view.pointer_up()
        assert not view.camera.panning
        view.dispose()

    def test_hover_returns_tooltip(self, solo: GalaxyView) -> None:
        _, (sx, sy) = self.star_on_screen(solo)

        card = solo.pointer_move(sx, sy)
        assert card["name"] == "A"
        assert card["url"].endswith("/a")
        assert solo.renderer.hovered == "a"

        assert solo.pointer_move(sx + 150, sy + 150) is None
        assert solo.renderer.hovered is None

    def test_wheel_zooms(self, solo: GalaxyView) -> None:
        assert solo.wheel(-1, 100, 100) == pytest.approx(1.1)
        assert solo.camera.zoom_level == pytest.approx(1.1)


class TestArtistUpdates:
    def test_queued_artists_apply_on_next_frame(self, solo: GalaxyView) -> None:
        solo.queue_artists([make_artist("a", ["pop"]), make_artist("b", ["pop"])])
        assert [node.id for node in solo.nodes] == ["a"]

        solo.advance()

        assert [node.id for node in solo.nodes] == ["a", "b"]
        assert set(solo.renderer.sprites) == {"a", "b"}
        assert len(solo.graph.edges) == 1

    def test_queue_from_another_thread(self, solo: GalaxyView) -> None:
        worker = threading.Thread(target=solo.queue_artists, args=([make_artist("z", ["rock"])],))
        worker.start()
        worker.join()

        solo.advance()

        assert [node.id for node in solo.nodes] == ["z"]

    def test_latest_queued_list_wins(self, solo: GalaxyView) -> None:
        solo.queue_artists([make_artist("x")])
        solo.queue_artists([make_artist("y")])
        solo.advance()

        assert [node.id for node in solo.nodes] == ["y"]

    def test_replacing_drops_drag_of_departed_star(self, solo: GalaxyView) -> None:
        solo.advance()
        node = solo.nodes[0]
        solo.pointer_down(*solo.camera.world_to_screen(*node.display_position(solo.elapsed)))

        solo.replace_artists([make_artist("b")])

        assert solo.dragging is None
        solo.pointer_up()
        solo.run(2000)
        assert not solo.engine.running

    def test_cooled_layout_keeps_wobbling(self, solo: GalaxyView) -> None:
        solo.engine.stop()
        body = solo.renderer.sprites["a"].body
        before = (body.x, body.y)

        solo.advance(0.5)

        assert (body.x, body.y) != before


def test_dispose_is_idempotent() -> None:
    view = make_view([make_artist("a")])
    view.dispose()
    view.dispose()

    view.advance()
    assert view.elapsed == 0.0
    with pytest.raises(RuntimeError):
        view.capture_frame()
