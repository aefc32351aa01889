from __future__ import annotations

from io import BytesIO

import qrcode
from PIL import Image


def qr_png(data: str, *, box_size: int = 10, border: int = 2) -> bytes:
    """PNG bytes of a QR code encoding ``data``."""
    qr = qrcode.QRCode(box_size=box_size, border=border)
    qr.add_data(data)
    qr.make(fit=True)
    buffer = BytesIO()
    qr.make_image(fill_color="black", back_color="white").save(buffer)
    return buffer.getvalue()


def qr_image(data: str, size: int) -> Image.Image:
    with Image.open(BytesIO(qr_png(data))) as img:
        return img.convert("RGB").resize((size, size), Image.NEAREST)
