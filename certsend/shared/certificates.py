from __future__ import annotations

import os
from io import BytesIO
from typing import NamedTuple

from flask import current_app
from PIL import Image, ImageDraw, ImageFont, UnidentifiedImageError
from reportlab.lib.utils import ImageReader
from reportlab.pdfgen import canvas

from .errors import GenerationError

NAME_Y_RATIO = 0.51
NAME_MAX_WIDTH_RATIO = 0.8
NAME_START_SIZE_RATIO = 1 / 14
NAME_MIN_SIZE_PX = 12
NAME_COLOR = (26, 35, 126)

_FONT_PATHS = (
    "/usr/share/fonts/truetype/dejavu/DejaVuSerif-Bold.ttf",
    "/usr/share/fonts/truetype/dejavu/DejaVuSans-Bold.ttf",
)

ALLOWED_TEMPLATE_EXTENSIONS = (".png", ".jpg", ".jpeg")


class CertificateTemplate(NamedTuple):
    path: str
    url: str = ""

    @classmethod
    def from_config(cls, config) -> "CertificateTemplate":
        return cls(
            path=config.get("CERT_TEMPLATE_PATH") or "",
            url=config.get("CERT_TEMPLATE_URL") or "",
        )

    def exists(self) -> bool:
        return bool(self.path) and os.path.isfile(self.path)


def current_template() -> CertificateTemplate:
    return CertificateTemplate.from_config(current_app.config)


def load_template_image(template: CertificateTemplate) -> Image.Image:
    if not template.exists():
        raise GenerationError(f"Certificate template not found at {template.path!r}.")
    try:
        with Image.open(template.path) as img:
            return img.convert("RGB")
    except (UnidentifiedImageError, OSError) as exc:
        raise GenerationError("Certificate template could not be loaded.") from exc


def _font(size_px: int) -> ImageFont.ImageFont:
    for path in _FONT_PATHS:
        try:
            return ImageFont.truetype(path, max(size_px, 1))
        except OSError:
            continue
    return ImageFont.load_default(size=max(size_px, 1))


def _fit_name(draw: ImageDraw.ImageDraw, name: str, width: int):
    size = max(int(width * NAME_START_SIZE_RATIO), NAME_MIN_SIZE_PX)
    max_width = width * NAME_MAX_WIDTH_RATIO
    while True:
        font = _font(size)
        left, top, right, bottom = draw.textbbox((0, 0), name, font=font)
        if right - left <= max_width or size <= NAME_MIN_SIZE_PX:
            return font, (left, top, right, bottom)
        size -= 2


def compose_certificate(template: CertificateTemplate, name: str) -> Image.Image:
    """Draw ``name`` centred at ~51% of the template height."""
    image = load_template_image(template)
    draw = ImageDraw.Draw(image)
    width, height = image.size
    font, (left, top, right, bottom) = _fit_name(draw, name, width)
    x = (width - (right - left)) / 2 - left
    y = height * NAME_Y_RATIO - (bottom - top) / 2 - top
    draw.text((x, y), name, font=font, fill=NAME_COLOR)
    return image


def render_png(template: CertificateTemplate, name: str) -> bytes:
    buffer = BytesIO()
    compose_certificate(template, name).save(buffer, format="PNG")
    return buffer.getvalue()


def render_pdf(template: CertificateTemplate, name: str) -> bytes:
    """Rasterise the composed certificate onto a single PDF page of the same size."""
    image = compose_certificate(template, name)
    width, height = image.size
    buffer = BytesIO()
    c = canvas.Canvas(buffer, pagesize=(width, height))
    c.setTitle(f"Certificate - {name}")
    c.drawImage(ImageReader(image), 0, 0, width=width, height=height)
    c.showPage()
    c.save()
    return buffer.getvalue()
