"""QR codes (PNG) for poll answer links."""

from io import BytesIO

import qrcode
from qrcode.constants import ERROR_CORRECT_M

from jury import config


def poll_answer_url(code: str) -> str:
    return f"{config.APP_URL}/poll/{code}"


def make_qr_png(data: str, box_size: int = 8, border: int = 2) -> bytes:
    qr = qrcode.QRCode(
        version=None,
        error_correction=ERROR_CORRECT_M,
        box_size=box_size,
        border=border,
    )
    qr.add_data(data)
    qr.make(fit=True)
    img = qr.make_image(fill_color="black", back_color="white")

    buf = BytesIO()
    img.save(buf, format="PNG")
    return buf.getvalue()
