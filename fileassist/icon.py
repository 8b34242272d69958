"""Procedurally drawn application icon (folder with a magnifier)."""
from __future__ import annotations

from PIL import Image, ImageDraw

BASE_SIZE = 256

FOLDER_BACK = (251, 188, 5)
FOLDER_FRONT = (255, 214, 92)
LENS_RING = (26, 115, 232)
LENS_GLASS = (210, 227, 252)


def _scale(points: list[tuple[float, float]], size: int) -> list[tuple[int, int]]:
    return [(int(px * size), int(py * size)) for px, py in points]


def build_icon_image(size: int = 64) -> Image.Image:
    """Render the icon at ``size`` pixels (square, RGBA)."""
    if size <= 0:
        raise ValueError("Icon size must be positive")

    img = Image.new("RGBA", (BASE_SIZE, BASE_SIZE), (255, 255, 255, 0))
    draw = ImageDraw.Draw(img)

    # folder tab and body
    draw.polygon(_scale([(0.08, 0.22), (0.38, 0.22), (0.46, 0.3), (0.08, 0.3)], BASE_SIZE), fill=FOLDER_BACK)
    draw.rectangle(_scale([(0.08, 0.3), (0.86, 0.8)], BASE_SIZE), fill=FOLDER_BACK)
    draw.polygon(
        _scale([(0.08, 0.8), (0.16, 0.4), (0.94, 0.4), (0.86, 0.8)], BASE_SIZE),
        fill=FOLDER_FRONT,
    )

    # magnifier
    cx, cy, r = 0.62 * BASE_SIZE, 0.58 * BASE_SIZE, 0.17 * BASE_SIZE
    ring = int(BASE_SIZE * 0.05)
    draw.ellipse((cx - r, cy - r, cx + r, cy + r), fill=LENS_GLASS, outline=LENS_RING, width=ring)
    handle_start = (int(cx + r * 0.7), int(cy + r * 0.7))
    handle_end = (int(0.93 * BASE_SIZE), int(0.93 * BASE_SIZE))
    draw.line([handle_start, handle_end], fill=LENS_RING, width=int(BASE_SIZE * 0.07))

    if size == BASE_SIZE:
        return img
    return img.resize((size, size), Image.LANCZOS)


__all__ = ["build_icon_image"]
