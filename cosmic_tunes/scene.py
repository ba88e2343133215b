"""Retained-mode scene graph and its Pillow rasterizer.

Display objects form a tree of containers. Each object carries a local
transform (position, pivot, scale, rotation) composed into a world transform
at render time, plus alpha and tint. Containers may blur their contents or
blend them additively. ``PillowSceneGraph.extract`` rasterizes a stage into a
``PIL.Image``.
"""

import math
from abc import ABC, abstractmethod
from dataclasses import dataclass

from PIL import Image, ImageChops, ImageDraw, ImageFilter, ImageFont

from .config import BACKGROUND_COLOR

# (a, b, c, d, tx, ty): x' = a*x + c*y + tx, y' = b*x + d*y + ty
Matrix = tuple[float, float, float, float, float, float]
IDENTITY: Matrix = (1.0, 0.0, 0.0, 1.0, 0.0, 0.0)

BLEND_NORMAL = "normal"
BLEND_ADD = "add"
WHITE = 0xFFFFFF


def multiply(m: Matrix, n: Matrix) -> Matrix:
    """Compose two transforms; ``n`` is applied first."""
    a, b, c, d, tx, ty = m
    a2, b2, c2, d2, tx2, ty2 = n
    return (
        a * a2 + c * b2,
        b * a2 + d * b2,
        a * c2 + c * d2,
        b * c2 + d * d2,
        a * tx2 + c * ty2 + tx,
        b * tx2 + d * ty2 + ty,
    )


def apply(m: Matrix, x: float, y: float) -> tuple[float, float]:
    a, b, c, d, tx, ty = m
    return a * x + c * y + tx, b * x + d * y + ty


def invert(m: Matrix) -> Matrix:
    a, b, c, d, tx, ty = m
    det = a * d - b * c
    if det == 0:
        raise ValueError("Transform is not invertible")
    return (
        d / det,
        -b / det,
        -c / det,
        a / det,
        (c * ty - d * tx) / det,
        (b * tx - a * ty) / det,
    )


def rgb(color: int) -> tuple[int, int, int]:
    return (color >> 16) & 0xFF, (color >> 8) & 0xFF, color & 0xFF


def multiply_tint(first: int, second: int) -> int:
    r1, g1, b1 = rgb(first)
    r2, g2, b2 = rgb(second)
    return ((r1 * r2 // 255) << 16) | ((g1 * g2 // 255) << 8) | (b1 * b2 // 255)


def hsl_to_hex(h: float, s: float, l: float) -> int:
    """Convert HSL (degrees, 0-1, 0-1) to a 0xRRGGBB integer."""
    c = (1 - abs(2 * l - 1)) * s
    hp = (h % 360) / 60
    x = c * (1 - abs(hp % 2 - 1))
    sector = int(hp)
    r, g, b = [
        (c, x, 0.0),
        (x, c, 0.0),
        (0.0, c, x),
        (0.0, x, c),
        (x, 0.0, c),
        (c, 0.0, x),
    ][sector % 6]
    m = l - c / 2
    return (round((r + m) * 255) << 16) + (round((g + m) * 255) << 8) + round((b + m) * 255)


class Texture:
    """RGBA bitmap shared by sprites."""

    def __init__(self, image: Image.Image) -> None:
        self.image = image.convert("RGBA")
        self.destroyed = False

    @property
    def width(self) -> int:
        return self.image.width

    @property
    def height(self) -> int:
        return self.image.height

    def destroy(self) -> None:
        self.destroyed = True


class DisplayObject:
    def __init__(self) -> None:
        self.x = 0.0
        self.y = 0.0
        self.pivot_x = 0.0
        self.pivot_y = 0.0
        self.scale_x = 1.0
        self.scale_y = 1.0
        self.rotation = 0.0
        self.alpha = 1.0
        self.visible = True
        self.parent: "Container | None" = None
        self.destroyed = False

    def set_scale(self, scale: float) -> None:
        self.scale_x = scale
        self.scale_y = scale

    def local_matrix(self) -> Matrix:
        cos_r = math.cos(self.rotation)
        sin_r = math.sin(self.rotation)
        a = cos_r * self.scale_x
        b = sin_r * self.scale_x
        c = -sin_r * self.scale_y
        d = cos_r * self.scale_y
        tx = self.x - (a * self.pivot_x + c * self.pivot_y)
        ty = self.y - (b * self.pivot_x + d * self.pivot_y)
        return (a, b, c, d, tx, ty)

    def world_matrix(self) -> Matrix:
        matrix = self.local_matrix()
        node = self.parent
        while node is not None:
            matrix = multiply(node.local_matrix(), matrix)
            node = node.parent
        return matrix

    def to_global(self, x: float, y: float) -> tuple[float, float]:
        return apply(self.world_matrix(), x, y)

    def to_local(self, x: float, y: float) -> tuple[float, float]:
        return apply(invert(self.world_matrix()), x, y)

    def destroy(self) -> None:
        if self.parent is not None:
            self.parent.remove_child(self)
        self.destroyed = True


class Container(DisplayObject):
    def __init__(self) -> None:
        super().__init__()
        self.children: list[DisplayObject] = []
        self.blend_mode = BLEND_NORMAL
        self.blur = 0
        self.tint = WHITE

    def add_child(self, child: DisplayObject) -> DisplayObject:
        if child.parent is not None:
            child.parent.remove_child(child)
        child.parent = self
        self.children.append(child)
        return child

    def remove_child(self, child: DisplayObject) -> None:
        if child in self.children:
            self.children.remove(child)
            child.parent = None

    def destroy(self) -> None:
        for child in list(self.children):
            child.destroy()
        super().destroy()


@dataclass(frozen=True)
class Circle:
    x: float
    y: float
    radius: float
    color: int
    alpha: float


@dataclass(frozen=True)
class Line:
    x0: float
    y0: float
    x1: float
    y1: float
    width: float
    color: int
    alpha: float


@dataclass(frozen=True)
class RoundedRect:
    x: float
    y: float
    width: float
    height: float
    radius: float
    color: int
    alpha: float


Shape = Circle | Line | RoundedRect


class Graphics(DisplayObject):
    """Immediate-style vector shapes, redrawn by clearing and re-adding."""

    def __init__(self) -> None:
        super().__init__()
        self.shapes: list[Shape] = []

    def clear(self) -> None:
        self.shapes.clear()

    def circle(self, x: float, y: float, radius: float, color: int, alpha: float = 1.0) -> None:
        self.shapes.append(Circle(x, y, radius, color, alpha))

    def line(self, x0: float, y0: float, x1: float, y1: float, width: float, color: int, alpha: float = 1.0) -> None:
        self.shapes.append(Line(x0, y0, x1, y1, width, color, alpha))

    def rounded_rect(
        self,
        x: float,
        y: float,
        width: float,
        height: float,
        radius: float,
        color: int,
        alpha: float = 1.0,
    ) -> None:
        self.shapes.append(RoundedRect(x, y, width, height, radius, color, alpha))


class Sprite(DisplayObject):
    def __init__(self, texture: Texture) -> None:
        super().__init__()
        self.texture = texture
        self.anchor_x = 0.0
        self.anchor_y = 0.0
        self.tint = WHITE

    def set_anchor(self, x: float, y: float | None = None) -> None:
        self.anchor_x = x
        self.anchor_y = x if y is None else y

    @property
    def width(self) -> float:
        return self.texture.width * abs(self.scale_x)

    @width.setter
    def width(self, value: float) -> None:
        self.scale_x = value / self.texture.width

    @property
    def height(self) -> float:
        return self.texture.height * abs(self.scale_y)

    @height.setter
    def height(self, value: float) -> None:
        self.scale_y = value / self.texture.height


class Text(Sprite):
    """Sprite whose texture is a rendered label."""

    def __init__(self, texture: Texture, content: str) -> None:
        super().__init__(texture)
        self.content = content


class SceneGraph(ABC):
    """Capability the render layer depends on to build and draw frames."""

    @abstractmethod
    def container(self) -> Container:
        ...

    @abstractmethod
    def graphics(self) -> Graphics:
        ...

    @abstractmethod
    def sprite(self, texture: Texture) -> Sprite:
        ...

    @abstractmethod
    def text(self, content: str, size: int = 10, fill: int = WHITE) -> Text:
        ...

    @abstractmethod
    def generate_texture(self, graphics: Graphics) -> Texture:
        ...

    @abstractmethod
    def radial_texture(self, size: int = 100) -> Texture:
        ...

    @abstractmethod
    def extract(self, stage: Container, width: int, height: int) -> Image.Image:
        ...


class PillowSceneGraph(SceneGraph):
    """Rasterizes display trees into RGB images."""

    def __init__(self, background: int = BACKGROUND_COLOR) -> None:
        self.background = background
        self.font = ImageFont.load_default()
        self._text_cache: dict[tuple[str, int], Texture] = {}

    def container(self) -> Container:
        return Container()

    def graphics(self) -> Graphics:
        return Graphics()

    def sprite(self, texture: Texture) -> Sprite:
        return Sprite(texture)

    def text(self, content: str, size: int = 10, fill: int = WHITE) -> Text:
        key = (content, fill)
        texture = self._text_cache.get(key)
        if texture is None:
            left, top, right, bottom = self.font.getbbox(content)
            image = Image.new("RGBA", (max(1, right - left + 2), max(1, bottom - top + 2)), (0, 0, 0, 0))
            ImageDraw.Draw(image).text((1 - left, 1 - top), content, font=self.font, fill=rgb(fill) + (255,))
            texture = Texture(image)
            self._text_cache[key] = texture
        label = Text(texture, content)
        # The bitmap font has a fixed pixel height; scale toward the requested size.
        label.set_scale(size / max(texture.height, 1))
        return label

    def generate_texture(self, graphics: Graphics) -> Texture:
        bounds = _shape_bounds(graphics.shapes)
        if bounds is None:
            return Texture(Image.new("RGBA", (1, 1), (0, 0, 0, 0)))
        x0, y0, x1, y1 = bounds
        width = max(1, math.ceil(x1 - x0))
        height = max(1, math.ceil(y1 - y0))
        image = Image.new("RGBA", (width, height), (0, 0, 0, 0))
        offset: Matrix = (1.0, 0.0, 0.0, 1.0, -x0, -y0)
        for shape in graphics.shapes:
            _draw_shape(image, shape, offset, 1.0, WHITE)
        return Texture(image)

    def radial_texture(self, size: int = 100) -> Texture:
        """White disc fading from opaque center to transparent rim."""
        falloff = ImageChops.invert(Image.radial_gradient("L")).resize((size, size))
        image = Image.new("RGBA", (size, size), (255, 255, 255, 0))
        image.putalpha(falloff)
        return Texture(image)

    def extract(self, stage: Container, width: int, height: int) -> Image.Image:
        canvas = Image.new("RGBA", (width, height), rgb(self.background) + (255,))
        self._draw(stage, canvas, IDENTITY, 1.0, WHITE)
        return canvas.convert("RGB")

    def _draw(self, obj: DisplayObject, canvas: Image.Image, parent: Matrix, parent_alpha: float, parent_tint: int) -> None:
        if not obj.visible or obj.destroyed:
            return
        alpha = parent_alpha * obj.alpha
        if alpha <= 0:
            return
        matrix = multiply(parent, obj.local_matrix())

        if isinstance(obj, Container):
            tint = multiply_tint(parent_tint, obj.tint)
            if obj.blur or obj.blend_mode != BLEND_NORMAL:
                layer = Image.new("RGBA", canvas.size, (0, 0, 0, 0))
                for child in obj.children:
                    self._draw(child, layer, matrix, alpha, tint)
                if obj.blur:
                    layer = layer.filter(ImageFilter.GaussianBlur(obj.blur))
                _blend(canvas, layer, obj.blend_mode)
            else:
                for child in obj.children:
                    self._draw(child, canvas, matrix, alpha, tint)
        elif isinstance(obj, Graphics):
            for shape in obj.shapes:
                _draw_shape(canvas, shape, matrix, alpha, parent_tint)
        elif isinstance(obj, Sprite):
            _draw_sprite(canvas, obj, matrix, alpha, multiply_tint(parent_tint, obj.tint))


def _blend(canvas: Image.Image, layer: Image.Image, mode: str) -> None:
    if mode == BLEND_ADD:
        layer_alpha = layer.getchannel("A")
        weighted = ImageChops.multiply(layer.convert("RGB"), Image.merge("RGB", (layer_alpha,) * 3))
        summed = ImageChops.add(canvas.convert("RGB"), weighted)
        summed.putalpha(canvas.getchannel("A"))
        canvas.paste(summed)
    else:
        canvas.alpha_composite(layer)


def _shape_bounds(shapes: list[Shape]) -> tuple[float, float, float, float] | None:
    boxes = []
    for shape in shapes:
        if isinstance(shape, Circle):
            boxes.append((shape.x - shape.radius, shape.y - shape.radius, shape.x + shape.radius, shape.y + shape.radius))
        elif isinstance(shape, Line):
            pad = shape.width / 2
            boxes.append(
                (
                    min(shape.x0, shape.x1) - pad,
                    min(shape.y0, shape.y1) - pad,
                    max(shape.x0, shape.x1) + pad,
                    max(shape.y0, shape.y1) + pad,
                )
            )
        else:
            boxes.append((shape.x, shape.y, shape.x + shape.width, shape.y + shape.height))
    if not boxes:
        return None
    return (
        min(box[0] for box in boxes),
        min(box[1] for box in boxes),
        max(box[2] for box in boxes),
        max(box[3] for box in boxes),
    )


def _stamp(canvas: Image.Image, image: Image.Image, left: int, top: int) -> None:
    """Alpha-composite ``image`` at (left, top), clipped to the canvas."""
    crop_left = max(0, -left)
    crop_top = max(0, -top)
    crop_right = min(image.width, canvas.width - left)
    crop_bottom = min(image.height, canvas.height - top)
    if crop_right <= crop_left or crop_bottom <= crop_top:
        return
    if (crop_left, crop_top, crop_right, crop_bottom) != (0, 0, image.width, image.height):
        image = image.crop((crop_left, crop_top, crop_right, crop_bottom))
    canvas.alpha_composite(image, dest=(left + crop_left, top + crop_top))


def _draw_shape(canvas: Image.Image, shape: Shape, matrix: Matrix, alpha: float, tint: int) -> None:
    scale = math.sqrt(abs(matrix[0] * matrix[3] - matrix[1] * matrix[2])) or 1.0
    opacity = max(0, min(255, int(round(255 * alpha * shape.alpha))))
    if opacity == 0:
        return
    color = rgb(multiply_tint(shape.color, tint)) + (opacity,)

    if isinstance(shape, Circle):
        cx, cy = apply(matrix, shape.x, shape.y)
        radius = shape.radius * scale
        if radius <= 0:
            return
        left, top = math.floor(cx - radius), math.floor(cy - radius)
        size = math.ceil(radius * 2) + 2
        overlay = Image.new("RGBA", (size, size), (0, 0, 0, 0))
        ImageDraw.Draw(overlay).ellipse(
            (cx - radius - left, cy - radius - top, cx + radius - left, cy + radius - top),
            fill=color,
        )
        _stamp(canvas, overlay, left, top)
    elif isinstance(shape, Line):
        x0, y0 = apply(matrix, shape.x0, shape.y0)
        x1, y1 = apply(matrix, shape.x1, shape.y1)
        width = max(1, int(round(shape.width * scale)))
        pad = width + 1
        left = math.floor(min(x0, x1)) - pad
        top = math.floor(min(y0, y1)) - pad
        overlay = Image.new(
            "RGBA",
            (math.ceil(abs(x1 - x0)) + pad * 2 + 1, math.ceil(abs(y1 - y0)) + pad * 2 + 1),
            (0, 0, 0, 0),
        )
        ImageDraw.Draw(overlay).line((x0 - left, y0 - top, x1 - left, y1 - top), fill=color, width=width)
        _stamp(canvas, overlay, left, top)
    else:
        x0, y0 = apply(matrix, shape.x, shape.y)
        x1, y1 = apply(matrix, shape.x + shape.width, shape.y + shape.height)
        left, top = math.floor(min(x0, x1)), math.floor(min(y0, y1))
        overlay = Image.new("RGBA", (math.ceil(abs(x1 - x0)) + 1, math.ceil(abs(y1 - y0)) + 1), (0, 0, 0, 0))
        ImageDraw.Draw(overlay).rounded_rectangle(
            (min(x0, x1) - left, min(y0, y1) - top, max(x0, x1) - left, max(y0, y1) - top),
            radius=shape.radius * scale,
            fill=color,
        )
        _stamp(canvas, overlay, left, top)


def _draw_sprite(canvas: Image.Image, sprite: Sprite, matrix: Matrix, alpha: float, tint: int) -> None:
    a, b, c, d, _, _ = matrix
    scale_x = math.hypot(a, b)
    scale_y = math.hypot(c, d)
    width = int(round(sprite.texture.width * scale_x))
    height = int(round(sprite.texture.height * scale_y))
    if width < 1 or height < 1 or width > canvas.width * 4 or height > canvas.height * 4:
        return

    image = sprite.texture.image
    if (width, height) != image.size:
        image = image.resize((width, height), Image.Resampling.BILINEAR)
    if tint != WHITE:
        image = ImageChops.multiply(image, Image.new("RGBA", image.size, rgb(tint) + (255,)))
    if alpha < 1:
        image = image.copy()
        image.putalpha(image.getchannel("A").point(lambda value: int(value * alpha)))

    # Offset of the anchor from the bitmap center, before rotation.
    vx = sprite.anchor_x * width - width / 2
    vy = sprite.anchor_y * height - height / 2
    angle = math.atan2(b, a)
    if angle:
        image = image.rotate(-math.degrees(angle), resample=Image.Resampling.BILINEAR, expand=True)
        vx, vy = vx * math.cos(angle) - vy * math.sin(angle), vx * math.sin(angle) + vy * math.cos(angle)

    origin_x, origin_y = apply(matrix, 0.0, 0.0)
    left = int(round(origin_x - (image.width / 2 + vx)))
    top = int(round(origin_y - (image.height / 2 + vy)))
    _stamp(canvas, image, left, top)
