import random

import pytest

from cosmic_tunes.config import EffectSettings
from cosmic_tunes.effects import ShootingStars, Starfield, apply_parallax, frames, streak_alpha
from cosmic_tunes.scene import Container, PillowSceneGraph


def test_streak_alpha_envelope() -> None:
    assert streak_alpha(0.0) == 0.0
    assert streak_alpha(0.15) == pytest.approx(1.0)
    assert streak_alpha(1.0) == pytest.approx(0.0)
    assert streak_alpha(0.075) == pytest.approx(0.5)
    assert streak_alpha(0.575) == pytest.approx(0.5)


def test_frames_converts_seconds() -> None:
    assert frames(1 / 60) == pytest.approx(1.0)
    assert frames(0.5) == pytest.approx(30.0)


def test_parallax_follows_fraction_of_camera() -> None:
    camera = Container()
    camera.set_scale(2.0)
    camera.x, camera.y = 100, 50
    layer = Container()

    apply_parallax(layer, camera, 0.2, 800, 600)

    assert layer.scale_x == pytest.approx(1.2)
    assert (layer.x, layer.y) == pytest.approx((-100, -70))


class TestStarfield:
    def test_stars_wrap_around_edges(self) -> None:
        field = Starfield(PillowSceneGraph(), 300, 200, count=3, rng=random.Random(5))
        left, bottom, _ = field.stars
        left.sprite.x = -3
        bottom.sprite.y = 203

        field.update(1.0)

        assert left.sprite.x == 302
        assert bottom.sprite.y == -2

    def test_twinkle_and_hue_advance(self) -> None:
        field = Starfield(PillowSceneGraph(), 300, 200, count=10, rng=random.Random(5))

        for _ in range(200):
            field.update(1.0)

        assert field.hue == pytest.approx(214.0)
        assert all(0.1 - 1e-9 <= star.sprite.alpha <= 0.9 + 1e-9 for star in field.stars)

    def test_dispose_releases_sprites(self) -> None:
        field = Starfield(PillowSceneGraph(), 300, 200, count=4, rng=random.Random(5))
        sprites = [star.sprite for star in field.stars]

        field.dispose()

        assert field.stars == []
        assert all(sprite.destroyed for sprite in sprites)
        assert field.texture.destroyed


class TestShootingStars:
    def make(self, chance: float = 0.0, size: float = 800) -> ShootingStars:
        settings = EffectSettings(shooting_star_chance=chance)
        return ShootingStars(PillowSceneGraph(), size, size, settings, random.Random(11))

    def test_spawn_starts_invisible_just_off_an_edge(self) -> None:
        stars = self.make()

        for _ in range(20):
            shooter = stars.spawn()
            sprite = shooter.sprite
            assert sprite.alpha == 0.0
            assert sprite.x in (-20, 820) or sprite.y in (-20, 820)
            assert 1200 <= (shooter.vx**2 + shooter.vy**2) ** 0.5 <= 1800
            assert 0.9 <= shooter.max_life <= 1.6

    def test_removed_when_life_runs_out(self) -> None:
        stars = self.make()
        shooter = stars.spawn()
        shooter.vx = shooter.vy = 0.0
        shooter.sprite.x, shooter.sprite.y = 400, 400

        stars.update(shooter.max_life / 2)
        assert shooter in stars.active
        assert 0 < shooter.sprite.alpha <= 1
        assert shooter.sprite.scale_x == pytest.approx(1.2)

        stars.update(shooter.max_life)
        assert shooter not in stars.active
        assert shooter.sprite.destroyed
        assert shooter.sprite.parent is None

    def test_removed_when_past_margin(self) -> None:
        stars = self.make()
        shooter = stars.spawn()
        shooter.sprite.x = -150

        stars.update(0.001)

        assert stars.active == []
        assert shooter.sprite.destroyed

    def test_cooldown_gates_spawning(self) -> None:
        stars = self.make(chance=1.0)

        stars.update(1.0)
        assert stars.active == []
        assert stars.cooldown == pytest.approx(1.0)

        # The spawned streak may already have flown off-screen; the reset cooldown shows it fired.
        stars.update(0.6)
        assert stars.cooldown == 0.0

    def test_dispose_clears_active(self) -> None:
        stars = self.make()
        shooter = stars.spawn()

        stars.dispose()

        assert stars.active == []
        assert shooter.sprite.destroyed
        assert stars.layer.destroyed
