from __future__ import annotations

import unicodedata
from dataclasses import dataclass
from datetime import date
from io import BytesIO
from typing import Mapping

from flask import current_app, has_app_context
from PIL import Image, ImageDraw, ImageFont, UnidentifiedImageError
from reportlab.lib.utils import ImageReader
from reportlab.pdfgen import canvas

from .mail_utils import attachment_filename
from .results import TemplateMissing
from .time import fmt_date

CERT_WIDTH = 1200
CERT_HEIGHT = 800
NAME_COLOR = (0x1E, 0x29, 0x3B)
TEXT_COLOR = (0x47, 0x55, 0x69)
NAME_MAX_PX = 52
NAME_MIN_PX = 32
NAME_SIDE_MARGIN_PX = 80
LINE_PX = 24
NAME_BASELINE_Y = 420
LINE_BASELINES_Y = (510, 550, 590)
PARTICIPATION_LINE = "for successfully participating in the event"

PDF_MIME = "application/pdf"


class CertificateRenderError(ValueError):
    """Raised when one registrant's certificate cannot be rendered."""


@dataclass(frozen=True)
class TemplatePaths:
    background: str
    font_bold: str
    font_regular: str

    @classmethod
    def from_config(cls, config: Mapping) -> "TemplatePaths":
        return cls(
            background=config["CERT_TEMPLATE_PATH"],
            font_bold=config["CERT_FONT_BOLD_PATH"],
            font_regular=config["CERT_FONT_REGULAR_PATH"],
        )


@dataclass(frozen=True)
class CertificateTemplate:
    """Template assets held as bytes; every render decodes a fresh copy."""

    background: bytes
    font_bold: bytes
    font_regular: bytes

    def background_image(self) -> Image.Image:
        with Image.open(BytesIO(self.background)) as img:
            return img.convert("RGB").resize((CERT_WIDTH, CERT_HEIGHT))

    def font(self, size: int, *, bold: bool = False) -> ImageFont.FreeTypeFont:
        data = self.font_bold if bold else self.font_regular
        return ImageFont.truetype(BytesIO(data), size)


@dataclass(frozen=True)
class RenderedCertificate:
    png: bytes
    pdf: bytes
    filename: str


def _read_asset(label: str, path: str) -> bytes:
    try:
        with open(path, "rb") as fh:
            return fh.read()
    except OSError as exc:
        raise TemplateMissing(
            f"Certificate {label} asset is not readable: {path}",
            asset=label,
            path=str(path),
        ) from exc


def load_certificate_template(paths: TemplatePaths) -> CertificateTemplate:
    """Read and validate the background image and both fonts."""
    background = _read_asset("background", paths.background)
    try:
        with Image.open(BytesIO(background)) as img:
            img.verify()
    except (UnidentifiedImageError, OSError) as exc:
        raise TemplateMissing(
            f"Certificate background is not a valid image: {paths.background}",
            asset="background",
            path=str(paths.background),
        ) from exc

    fonts: dict[str, bytes] = {}
    for label, path in (("font_bold", paths.font_bold), ("font_regular", paths.font_regular)):
        data = _read_asset(label, path)
        try:
            ImageFont.truetype(BytesIO(data), LINE_PX)
        except OSError as exc:
            raise TemplateMissing(
                f"Certificate {label} is not a usable font: {path}",
                asset=label,
                path=str(path),
            ) from exc
        fonts[label] = data

    if has_app_context():
        current_app.logger.info(
            "[cert-template] background=%s bold=%s regular=%s",
            paths.background,
            paths.font_bold,
            paths.font_regular,
        )
    return CertificateTemplate(
        background=background,
        font_bold=fonts["font_bold"],
        font_regular=fonts["font_regular"],
    )


def _clean_name(name: str | None) -> str:
    cleaned = " ".join((name or "").split())
    if not cleaned:
        raise CertificateRenderError("Registrant name is blank.")
    if any(unicodedata.category(ch) in {"Cc", "Cs"} for ch in cleaned):
        raise CertificateRenderError(f"Registrant name has unprintable characters: {name!r}")
    return cleaned


def _fit_name_font(
    draw: ImageDraw.ImageDraw, template: CertificateTemplate, name: str
) -> ImageFont.FreeTypeFont:
    max_width = CERT_WIDTH - 2 * NAME_SIDE_MARGIN_PX
    font_size = NAME_MAX_PX
    font = template.font(font_size, bold=True)
    while font_size > NAME_MIN_PX:
        if draw.textlength(name, font=font) <= max_width:
            break
        font_size -= 1
        font = template.font(font_size, bold=True)
    return font


def render_certificate_image(
    template: CertificateTemplate, name: str, event_name: str, event_date: date | None
) -> bytes:
    """Return the certificate as PNG bytes."""
    name = _clean_name(name)
    image = template.background_image()
    draw = ImageDraw.Draw(image)
    center_x = CERT_WIDTH / 2
    try:
        draw.text(
            (center_x, NAME_BASELINE_Y),
            name,
            font=_fit_name_font(draw, template, name),
            fill=NAME_COLOR,
            anchor="ms",
        )
        body_font = template.font(LINE_PX)
        lines = [PARTICIPATION_LINE, event_name or ""]
        if event_date:
            lines.append(f"held on {fmt_date(event_date)}")
        for y, line in zip(LINE_BASELINES_Y, lines):
            draw.text((center_x, y), line, font=body_font, fill=TEXT_COLOR, anchor="ms")
    except (ValueError, OSError) as exc:
        raise CertificateRenderError(f"Could not draw certificate text: {exc}") from exc

    out = BytesIO()
    image.save(out, format="PNG")
    return out.getvalue()


def embed_in_pdf(png: bytes, width: int = CERT_WIDTH, height: int = CERT_HEIGHT) -> bytes:
    """Single page sized to the image, with the image as its only content."""
    buffer = BytesIO()
    c = canvas.Canvas(buffer, pagesize=(width, height), invariant=1)
    c.drawImage(ImageReader(BytesIO(png)), 0, 0, width=width, height=height)
    c.showPage()
    c.save()
    return buffer.getvalue()


def render_certificate(
    template: CertificateTemplate, name: str, event_name: str, event_date: date | None
) -> RenderedCertificate:
    png = render_certificate_image(template, name, event_name, event_date)
    return RenderedCertificate(
        png=png,
        pdf=embed_in_pdf(png),
        filename=attachment_filename("Certificate", event_name, "pdf"),
    )
