import os
import tempfile
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from PIL import Image, ImageDraw, ImageFont

from logger import get_logger

logger = get_logger(__name__)

IMAGE_SIZE = (800, 600)
BG_COLOR = (30, 30, 30)
TEXT_COLOR = (240, 240, 240)
TOP_N = 5
NO_DATA_LINE = "No countries with positive GDP found."


def select_top_countries(records: Sequence[Dict[str, Any]], limit: int = TOP_N) -> List[Dict[str, Any]]:
    """Highest positive estimated_gdp first; equal values keep their input order."""
    qualifying = [r for r in records if r.get("estimated_gdp") is not None and r["estimated_gdp"] > 0]
    # sorted() is stable, so ties stay in encounter order
    return sorted(qualifying, key=lambda r: r["estimated_gdp"], reverse=True)[:limit]


def format_timestamp(value: datetime) -> str:
    return value.isoformat().replace("+00:00", "Z")


def _load_fonts():
    try:
        return ImageFont.truetype("DejaVuSans-Bold.ttf", 28), ImageFont.truetype("DejaVuSans.ttf", 18)
    except OSError:
        return ImageFont.load_default(), ImageFont.load_default()


def render_summary_image(records: Sequence[Dict[str, Any]], total: int, refreshed_at: datetime, path) -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    img = Image.new("RGB", IMAGE_SIZE, color=BG_COLOR)
    draw = ImageDraw.Draw(img)
    font_title, font_body = _load_fonts()

    padding = 40
    y = padding
    draw.text((padding, y), "Countries Summary", fill=TEXT_COLOR, font=font_title)
    y += 50
    draw.text((padding, y), f"Total countries: {total}", fill=TEXT_COLOR, font=font_body)
    y += 30
    draw.text((padding, y), f"Last refreshed at: {format_timestamp(refreshed_at)}", fill=TEXT_COLOR, font=font_body)
    y += 40
    draw.text((padding, y), f"Top {TOP_N} countries by estimated GDP:", fill=TEXT_COLOR, font=font_body)
    y += 30

    top_countries = select_top_countries(records)
    if not top_countries:
        draw.text((padding + 10, y), NO_DATA_LINE, fill=TEXT_COLOR, font=font_body)
    for idx, c in enumerate(top_countries, start=1):
        draw.text((padding + 10, y), f"{idx}. {c['name']} ({c['estimated_gdp']:,.2f})", fill=TEXT_COLOR, font=font_body)
        y += 24

    # readers of the image endpoint must never see a half-written file
    fd, tmp_name = tempfile.mkstemp(prefix=".summary-", suffix=".png", dir=path.parent)
    try:
        with os.fdopen(fd, "wb") as tmp_file:
            img.save(tmp_file, format="PNG")
        os.replace(tmp_name, path)
    except BaseException:
        if os.path.exists(tmp_name):
            os.unlink(tmp_name)
        raise
    return path


def generate_summary_image(records: Sequence[Dict[str, Any]], total: int, refreshed_at: datetime, path) -> Optional[Path]:
    try:
        saved = render_summary_image(records, total, refreshed_at, path)
    except Exception:
        logger.exception("Failed to generate summary image.")
        return None
    logger.info(f"Saved summary image to {saved}")
    return saved
