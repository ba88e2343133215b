"""Background animation: twinkling starfield, shooting stars, and parallax."""

import math
import random
from dataclasses import dataclass

from .config import FRAME_SECONDS, EffectSettings
from .scene import Container, SceneGraph, Sprite, Texture, hsl_to_hex

STAR_HUE_START = 210.0
STAR_HUE_STEP = 0.02
STAR_SATURATION = 0.08
STAR_LIGHTNESS = 0.95
STREAK_ATTACK = 0.15
STREAK_JITTER = 0.25
EDGE_OFFSET = 20.0


@dataclass
class Star:
    sprite: Sprite
    vx: float
    vy: float
    twinkle: float
    layer: float


@dataclass
class ShootingStar:
    sprite: Sprite
    vx: float
    vy: float
    life: float
    max_life: float

    @property
    def progress(self) -> float:
        return self.life / self.max_life


def streak_alpha(progress: float) -> float:
    """Fade in over the first 15% of life, then fade out linearly to zero."""
    if progress < STREAK_ATTACK:
        return max(0.0, progress / STREAK_ATTACK)
    return max(0.0, 1 - (progress - STREAK_ATTACK) / (1 - STREAK_ATTACK))


def apply_parallax(layer: Container, camera: Container, factor: float, width: float, height: float) -> None:
    """Follow a fraction of the camera's pan and zoom so the layer appears farther away."""
    scale = 1 + (camera.scale_x - 1) * factor
    layer.set_scale(scale)
    layer.x = -camera.x * factor + width * (1 - scale) / 2
    layer.y = -camera.y * factor + height * (1 - scale) / 2


class Starfield:
    """Fixed pool of drifting dots; each dot's depth fixes its speed, size and twinkle rate."""

    def __init__(
        self,
        scene: SceneGraph,
        width: float,
        height: float,
        count: int,
        rng: random.Random,
    ) -> None:
        self.width = width
        self.height = height
        self.rng = rng
        self.layer = scene.container()
        self.hue = STAR_HUE_START
        self.stars: list[Star] = []

        dot = scene.graphics()
        dot.circle(0, 0, 1.2, 0xFFFFFF)
        self.texture: Texture = scene.generate_texture(dot)

        for _ in range(count):
            sprite = scene.sprite(self.texture)
            sprite.x = rng.random() * width
            sprite.y = rng.random() * height
            layer = rng.random()
            sprite.set_scale(0.6 + 1.4 * layer)
            sprite.alpha = 0.3 + rng.random() * 0.7
            depth_speed = layer * 0.6 + 0.4
            star = Star(
                sprite=sprite,
                vx=(0.2 + rng.random() * 0.6) * depth_speed,
                vy=(0.15 + rng.random() * 0.5) * depth_speed,
                twinkle=rng.random() * math.pi * 2,
                layer=layer,
            )
            self.layer.add_child(sprite)
            self.stars.append(star)
        self._update_tint()

    def _update_tint(self) -> None:
        self.layer.tint = hsl_to_hex(self.hue, STAR_SATURATION, STAR_LIGHTNESS)

    def update(self, delta: float) -> None:
        """Advance by ``delta`` frames (1.0 at 60 fps)."""
        for star in self.stars:
            sprite = star.sprite
            sprite.x -= star.vx * delta * 0.5
            sprite.y += star.vy * delta * 0.2
            if sprite.x < -2:
                sprite.x = self.width + 2
            if sprite.y > self.height + 2:
                sprite.y = -2
            star.twinkle += (0.01 + 0.02 * star.layer) * delta
            sprite.alpha = 0.5 + 0.4 * math.sin(star.twinkle)

        self.hue = (self.hue + STAR_HUE_STEP * delta) % 360
        self._update_tint()

    def resize(self, width: float, height: float) -> None:
        self.width = width
        self.height = height

    def dispose(self) -> None:
        self.layer.destroy()
        self.texture.destroy()
        self.stars.clear()


class ShootingStars:
    """Occasional streaks entering from a random screen edge."""

    def __init__(
        self,
        scene: SceneGraph,
        width: float,
        height: float,
        settings: EffectSettings,
        rng: random.Random,
    ) -> None:
        self.scene = scene
        self.width = width
        self.height = height
        self.settings = settings
        self.rng = rng
        self.layer = scene.container()
        self.active: list[ShootingStar] = []
        self.cooldown = 0.0

        streak = scene.graphics()
        streak.rounded_rect(-40, -1.5, 80, 3, 1.5, 0xFFFFFF)
        self.texture = scene.generate_texture(streak)

    def spawn(self) -> ShootingStar:
        rng = self.rng
        sprite = self.scene.sprite(self.texture)
        sprite.alpha = 0.0
        sprite.set_anchor(0.0, 0.5)
        jitter = rng.random() * STREAK_JITTER * 2 - STREAK_JITTER

        edge = rng.randrange(4)
        if edge == 0:
            sprite.x, sprite.y = rng.random() * self.width, -EDGE_OFFSET
            angle = math.pi / 2 + jitter
        elif edge == 1:
            sprite.x, sprite.y = self.width + EDGE_OFFSET, rng.random() * self.height * 0.6
            angle = math.pi + jitter
        elif edge == 2:
            sprite.x, sprite.y = self.width * (0.4 + rng.random() * 0.6), self.height + EDGE_OFFSET
            angle = -math.pi / 2 + jitter
        else:
            sprite.x, sprite.y = -EDGE_OFFSET, self.height * (0.4 + rng.random() * 0.6)
            angle = jitter

        sprite.rotation = angle
        speed = 1200 + rng.random() * 600
        shooter = ShootingStar(
            sprite=sprite,
            vx=math.cos(angle) * speed,
            vy=math.sin(angle) * speed,
            life=0.0,
            max_life=0.9 + rng.random() * 0.7,
        )
        self.layer.add_child(sprite)
        self.active.append(shooter)
        return shooter

    def _off_screen(self, sprite: Sprite) -> bool:
        margin = self.settings.shooting_star_margin
        return (
            sprite.x < -margin
            or sprite.y < -margin
            or sprite.x > self.width + margin
            or sprite.y > self.height + margin
        )

    def update(self, dt: float) -> None:
        """Roll for a spawn, then move, fade and retire active streaks."""
        self.cooldown += dt
        if self.cooldown > self.settings.shooting_star_cooldown and self.rng.random() < self.settings.shooting_star_chance:
            self.spawn()
            self.cooldown = 0.0

        for shooter in list(self.active):
            shooter.life += dt
            sprite = shooter.sprite
            sprite.x += shooter.vx * dt
            sprite.y += shooter.vy * dt
            progress = min(1.0, shooter.progress)
            sprite.alpha = streak_alpha(progress)
            sprite.scale_x = 1 + progress * 0.4
            if shooter.life >= shooter.max_life or self._off_screen(sprite):
                self.active.remove(shooter)
                sprite.destroy()

    def resize(self, width: float, height: float) -> None:
        self.width = width
        self.height = height

    def dispose(self) -> None:
        for shooter in self.active:
            shooter.sprite.destroy()
        self.active.clear()
        self.layer.destroy()
        self.texture.destroy()


def frames(dt: float) -> float:
    """Convert seconds to 60 fps frame units."""
    return dt / FRAME_SECONDS
