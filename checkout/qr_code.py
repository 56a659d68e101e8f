import base64
from io import BytesIO

import qrcode


def link_to_image(text: str, box_size: int = 8, border: int = 2) -> bytes:
    """Encode a payment link as a PNG QR code, black on white."""
    if not text:
        raise ValueError("Cannot encode an empty payment link")

    qr = qrcode.QRCode(
        version=None,
        error_correction=qrcode.constants.ERROR_CORRECT_M,
        box_size=box_size,
        border=border,
    )
    qr.add_data(text)
    qr.make(fit=True)

    img = qr.make_image(fill_color="#000000", back_color="#FFFFFF")
    buf = BytesIO()
    img.save(buf, format="PNG")
    return buf.getvalue()


def link_to_data_url(text: str) -> str:
    encoded = base64.b64encode(link_to_image(text)).decode("ascii")
    return f"data:image/png;base64,{encoded}"
