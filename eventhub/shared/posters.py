from __future__ import annotations

from io import BytesIO

from PIL import Image, ImageDraw, ImageFont

from .qr import qr_image
from .results import TemplateMissing
from .time import fmt_long_date

POSTER_WIDTH = 1080
POSTER_HEIGHT = 1350
BACKGROUND = (17, 24, 39)
WHITE = (255, 255, 255)
ACCENT = (96, 165, 250)
DETAIL = (229, 231, 235)
MOTIVE = (209, 213, 219)
QR_SIZE = 300


def _font(path: str, size: int) -> ImageFont.FreeTypeFont:
    try:
        return ImageFont.truetype(path, size)
    except OSError as exc:
        raise TemplateMissing(f"Poster font not readable: {path}", path=str(path)) from exc


def _fit(draw: ImageDraw.ImageDraw, text: str, path: str, size: int, floor: int):
    font = _font(path, size)
    while size > floor and draw.textlength(text, font=font) > POSTER_WIDTH - 120:
        size -= 4
        font = _font(path, size)
    return font


def render_event_poster(
    event,
    *,
    registration_url: str,
    org_name: str,
    venue: str,
    font_bold_path: str,
    font_regular_path: str,
) -> bytes:
    """1080x1350 PNG announcing ``event`` with a registration QR code."""
    image = Image.new("RGB", (POSTER_WIDTH, POSTER_HEIGHT), BACKGROUND)
    draw = ImageDraw.Draw(image)
    cx = POSTER_WIDTH / 2

    draw.text((cx, 280), org_name.upper(), font=_font(font_regular_path, 30), fill=ACCENT, anchor="ms")
    draw.text(
        (cx, 420),
        event.event_name,
        font=_fit(draw, event.event_name, font_bold_path, 100, 48),
        fill=WHITE,
        anchor="ms",
    )
    draw.text(
        (cx, 520),
        event.motive,
        font=_fit(draw, event.motive, font_regular_path, 40, 24),
        fill=MOTIVE,
        anchor="ms",
    )

    details = _font(font_regular_path, 32)
    lines = [fmt_long_date(event.event_date), venue]
    if event.registration_fee:
        lines.append(f"Fee: {event.registration_fee}")
    for idx, line in enumerate(lines):
        draw.text((cx, 620 + idx * 50), line, font=details, fill=DETAIL, anchor="ms")

    draw.text((cx, 880), "Scan to Register", font=details, fill=DETAIL, anchor="ms")
    image.paste(qr_image(registration_url, QR_SIZE), (int(cx - QR_SIZE / 2), 920))

    out = BytesIO()
    image.save(out, format="PNG")
    return out.getvalue()
