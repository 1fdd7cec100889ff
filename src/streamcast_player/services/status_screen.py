"""
Streamcast - Status Screens

Full-screen images shown while no content plays: the idle screen when nothing
is scheduled and the unavailable screen when an item cannot be played on this
device (e.g. its uploaded media was never copied here).
"""

import logging
from pathlib import Path
from typing import Optional, Tuple

from PIL import Image, ImageDraw, ImageFont

from streamcast_player.services.common.paths import STATUS_SCREEN_DIR

logger = logging.getLogger(__name__)

BACKGROUND_COLOR = (0, 0, 0)  # Black
TEXT_COLOR = (255, 255, 255)  # White
ACCENT_COLOR = (229, 9, 20)  # Streamcast red
SECONDARY_COLOR = (180, 180, 180)  # Grey for less prominent text

FONT_SIZE_TITLE = 72
FONT_SIZE_SUBTITLE = 36
FONT_SIZE_FOOTER = 24

FONT_PATHS = [
    "/usr/share/fonts/truetype/dejavu/DejaVuSans-Bold.ttf",
    "/usr/share/fonts/truetype/dejavu/DejaVuSans.ttf",
    "/usr/share/fonts/truetype/freefont/FreeSansBold.ttf",
    "/usr/share/fonts/truetype/liberation/LiberationSans-Bold.ttf",
]

IDLE_TITLE = "No Content Scheduled"
IDLE_SUBTITLE = "Content will appear during scheduled hours."
UNAVAILABLE_TITLE = "Content Unavailable"


def get_screen_size() -> Tuple[int, int]:
    """Framebuffer dimensions, 1920x1080 when they cannot be read."""
    try:
        with open('/sys/class/graphics/fb0/virtual_size', 'r') as f:
            w, h = f.read().strip().split(',')
            return int(w), int(h)
    except (OSError, ValueError):
        return 1920, 1080


def get_font(size: int):
    """Get a font, falling back to default if needed."""
    for path in FONT_PATHS:
        if Path(path).exists():
            return ImageFont.truetype(path, size)
    return ImageFont.load_default()


def _draw_centered(draw: ImageDraw.ImageDraw, text: str, font, center_x: int, y: int, fill) -> int:
    bbox = draw.textbbox((0, 0), text, font=font)
    draw.text((center_x - bbox[2] // 2, y), text, font=font, fill=fill)
    return bbox[3]


def create_status_screen(width: int, height: int, title: str, subtitle: str = "", footer: Optional[str] = None) -> Image.Image:
    img = Image.new('RGB', (width, height), BACKGROUND_COLOR)
    draw = ImageDraw.Draw(img)

    center_x = width // 2
    center_y = height // 2

    title_font = get_font(FONT_SIZE_TITLE)
    title_height = draw.textbbox((0, 0), title, font=title_font)[3]
    _draw_centered(draw, title, title_font, center_x, center_y - title_height - 20, ACCENT_COLOR)

    if subtitle:
        _draw_centered(draw, subtitle, get_font(FONT_SIZE_SUBTITLE), center_x, center_y + 20, TEXT_COLOR)

    if footer:
        footer_font = get_font(FONT_SIZE_FOOTER)
        footer_height = draw.textbbox((0, 0), footer, font=footer_font)[3]
        _draw_centered(draw, footer, footer_font, center_x, height - footer_height - 30, SECONDARY_COLOR)

    return img


def create_idle_screen(width: int, height: int) -> Image.Image:
    return create_status_screen(width, height, IDLE_TITLE, IDLE_SUBTITLE)


def create_unavailable_screen(width: int, height: int, title: str, message: str) -> Image.Image:
    return create_status_screen(width, height, UNAVAILABLE_TITLE, message, footer=title or None)


def save_status_screen(img: Image.Image, name: str, directory: Path = STATUS_SCREEN_DIR) -> Optional[Path]:
    """Save img as <directory>/<name>.png and return the path, or None on failure."""
    path = Path(directory) / f"{name}.png"
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        img.save(path, 'PNG')
        return path
    except OSError as e:
        logger.error(f"Error saving status screen {path}: {e}")
        return None
