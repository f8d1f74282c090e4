"""Raster operations behind the source and transform nodes.

All functions take and return Pillow images and are pure; encoding to and
from payloads happens in the executors.
"""

from __future__ import annotations

import math
from typing import Any, Iterable, Mapping

from PIL import Image, ImageColor, ImageDraw

ASPECT_RATIOS: tuple[str, ...] = ("1:1", "16:9", "4:3", "9:16", "3:2")
DIRECTIONS: tuple[str, ...] = ("center", "top", "bottom", "left", "right")

# (from joint, to joint, colour) bone segments of the pose skeleton
POSE_BONES: tuple[tuple[str, str, str], ...] = (
    ("head", "neck", "#ff0000"),
    ("neck", "left_shoulder", "#00ff00"),
    ("neck", "right_shoulder", "#00ff00"),
    ("left_shoulder", "left_elbow", "#00ff00"),
    ("right_shoulder", "right_elbow", "#00ff00"),
    ("left_elbow", "left_wrist", "#00ff00"),
    ("right_elbow", "right_wrist", "#00ff00"),
    ("neck", "torso", "#0000ff"),
    ("torso", "left_hip", "#ffff00"),
    ("torso", "right_hip", "#ffff00"),
    ("left_hip", "left_knee", "#ffff00"),
    ("right_hip", "right_knee", "#ffff00"),
    ("left_knee", "left_ankle", "#ffff00"),
    ("right_knee", "right_ankle", "#ffff00"),
)


def parse_aspect_ratio(value: str) -> float:
    """Parse ``"W:H"`` into a width/height ratio.

    Raises:
        ValueError: If the string is not two positive numbers
    """
    try:
        width, height = (float(part) for part in str(value).split(":"))
    except ValueError:
        raise ValueError(f"Invalid aspect ratio '{value}', expected W:H") from None
    if not (math.isfinite(width) and math.isfinite(height)) or width <= 0 or height <= 0:
        raise ValueError(f"Invalid aspect ratio '{value}', expected W:H")
    return width / height


def parse_color(value: str) -> tuple[int, int, int, int]:
    try:
        return ImageColor.getcolor(value, "RGBA")
    except (ValueError, AttributeError):
        raise ValueError(f"Invalid color '{value}'") from None


def canvas_size_for(aspect_ratio: str, long_side: int) -> tuple[int, int]:
    ratio = parse_aspect_ratio(aspect_ratio)
    if ratio >= 1:
        return long_side, max(1, round(long_side / ratio))
    return max(1, round(long_side * ratio)), long_side


def solid_color(color: str, aspect_ratio: str, long_side: int) -> Image.Image:
    return Image.new("RGB", canvas_size_for(aspect_ratio, long_side), parse_color(color)[:3])


def matches_ratio(image: Image.Image, ratio: float) -> bool:
    """True when resizing to ``ratio`` would change the image by less than a pixel."""
    width, height = image.size
    return abs(width - height * ratio) < 1 and abs(height - width / ratio) < 1


def _anchor_offset(free_x: int, free_y: int, direction: str) -> tuple[int, int]:
    if direction not in DIRECTIONS:
        raise ValueError(f"Invalid direction '{direction}'")
    x = {"left": 0, "right": free_x}.get(direction, free_x // 2)
    y = {"top": 0, "bottom": free_y}.get(direction, free_y // 2)
    return x, y


def crop_to_ratio(image: Image.Image, aspect_ratio: str, direction: str = "center") -> Image.Image:
    """Crop the largest region with ``aspect_ratio``; ``direction`` is the part kept."""
    ratio = parse_aspect_ratio(aspect_ratio)
    width, height = image.size
    if width / height > ratio:
        target_w, target_h = max(1, round(height * ratio)), height
    else:
        target_w, target_h = width, max(1, round(width / ratio))

    left, top = _anchor_offset(width - target_w, height - target_h, direction)
    return image.crop((left, top, left + target_w, top + target_h))


def pad_to_ratio(
    image: Image.Image,
    aspect_ratio: str,
    color: str = "#000000",
    direction: str = "center",
) -> Image.Image:
    """Extend the canvas with ``color`` to reach ``aspect_ratio``.

    ``direction`` is where the original image sits on the new canvas.
    """
    ratio = parse_aspect_ratio(aspect_ratio)
    width, height = image.size
    if width / height > ratio:
        target_w, target_h = width, max(height, round(width / ratio))
    else:
        target_w, target_h = max(width, round(height * ratio)), height

    fill = parse_color(color)
    mode = "RGBA" if image.mode in ("RGBA", "LA", "P") or fill[3] < 255 else "RGB"
    canvas = Image.new(mode, (target_w, target_h), fill if mode == "RGBA" else fill[:3])
    source = image.convert(mode)
    canvas.paste(source, _anchor_offset(target_w - width, target_h - height, direction))
    return canvas


def stitch(first: Image.Image, second: Image.Image, mode: str = "horizontal") -> Image.Image:
    """Concatenate two images on a transparent canvas."""
    first = first.convert("RGBA")
    second = second.convert("RGBA")
    if mode == "horizontal":
        size = (first.width + second.width, max(first.height, second.height))
        offset = (first.width, 0)
    elif mode == "vertical":
        size = (max(first.width, second.width), first.height + second.height)
        offset = (0, first.height)
    else:
        raise ValueError(f"Invalid stitch mode '{mode}'")

    canvas = Image.new("RGBA", size, (0, 0, 0, 0))
    canvas.paste(first, (0, 0))
    canvas.paste(second, offset)
    return canvas


def render_pose(
    joints: Mapping[str, Mapping[str, float]],
    size: int,
    output_mode: str = "skeleton",
) -> Image.Image:
    """Draw the pose skeleton; joint coordinates are percentages of the canvas."""
    monochrome = output_mode == "monochrome"
    canvas = Image.new("RGB", (size, size), (0, 0, 0))
    draw = ImageDraw.Draw(canvas)
    line_width = max(1, round(size * 0.025))
    radius = max(1, round(size * 0.012))

    def point(name: str) -> tuple[float, float] | None:
        joint = joints.get(name)
        if not joint:
            return None
        return float(joint["x"]) / 100 * size, float(joint["y"]) / 100 * size

    for start, end, color in POSE_BONES:
        a, b = point(start), point(end)
        if a is None or b is None:
            continue
        draw.line([a, b], fill="#ffffff" if monochrome else color, width=line_width)

    for name in joints:
        p = point(name)
        if p is not None:
            draw.ellipse(
                [p[0] - radius, p[1] - radius, p[0] + radius, p[1] + radius],
                fill="#ffffff",
            )
    return canvas


def _arrow_head(
    start: tuple[float, float], end: tuple[float, float], size: float
) -> list[tuple[float, float]]:
    angle = math.atan2(end[1] - start[1], end[0] - start[0])
    length = max(10.0, size * 3)
    return [
        end,
        (end[0] - length * math.cos(angle - math.pi / 6), end[1] - length * math.sin(angle - math.pi / 6)),
        (end[0] - length * math.cos(angle + math.pi / 6), end[1] - length * math.sin(angle + math.pi / 6)),
    ]


def render_elements(
    elements: Iterable[Mapping[str, Any]],
    size: tuple[int, int],
    background: Image.Image | None = None,
) -> Image.Image:
    """Render drawing elements (normalised 0-1 coordinates) to an RGBA image.

    Supported element types are ``freehand``, ``eraser``, ``rect``,
    ``circle`` and ``arrow``. Elements are drawn on their own layer so the
    eraser only removes strokes, never the background.
    """
    width, height = size
    layer = Image.new("RGBA", size, (0, 0, 0, 0))

    def scale(p: Mapping[str, float]) -> tuple[float, float]:
        return float(p["x"]) * width, float(p["y"]) * height

    for element in elements:
        kind = element.get("type")
        stroke = max(1, round(float(element.get("size", 4))))
        opacity = min(1.0, max(0.0, float(element.get("opacity", 1.0))))

        if kind == "eraser":
            points = [scale(p) for p in element.get("points") or []]
            if points:
                ImageDraw.Draw(layer).line(points, fill=(0, 0, 0, 0), width=stroke, joint="curve")
            continue

        red, green, blue, _ = parse_color(element.get("color", "#000000"))
        color = (red, green, blue, round(255 * opacity))
        stamp = Image.new("RGBA", size, (0, 0, 0, 0))
        draw = ImageDraw.Draw(stamp)

        if kind == "freehand":
            points = [scale(p) for p in element.get("points") or []]
            if len(points) == 1:
                points = points * 2
            if points:
                draw.line(points, fill=color, width=stroke, joint="curve")
        elif kind in ("rect", "circle", "arrow") and element.get("start") and element.get("end"):
            start, end = scale(element["start"]), scale(element["end"])
            filled = bool(element.get("is_filled"))
            if kind == "rect":
                box = [min(start[0], end[0]), min(start[1], end[1]), max(start[0], end[0]), max(start[1], end[1])]
                draw.rectangle(box, fill=color if filled else None, outline=color, width=stroke)
            elif kind == "circle":
                r = math.dist(start, end)
                box = [start[0] - r, start[1] - r, start[0] + r, start[1] + r]
                draw.ellipse(box, fill=color if filled else None, outline=color, width=stroke)
            else:
                draw.line([start, end], fill=color, width=stroke)
                draw.polygon(_arrow_head(start, end, stroke), fill=color)
        else:
            continue

        layer = Image.alpha_composite(layer, stamp)

    if background is None:
        return layer
    return Image.alpha_composite(background.convert("RGBA").resize(size), layer)
