"""QR code encoder backed by the qrcode library."""

import io

import qrcode
from qrcode.constants import ERROR_CORRECT_M

from letterflow.collaborators.base import QrEncoder


class QrCodeEncoder(QrEncoder):
    def __init__(self, box_size: int = 10, border: int = 4):
        self.box_size = box_size
        self.border = border

    def encode(self, text: str) -> bytes:
        qr = qrcode.QRCode(error_correction=ERROR_CORRECT_M, box_size=self.box_size, border=self.border)
        qr.add_data(text)
        qr.make(fit=True)
        image = qr.make_image(fill_color="black", back_color="white")
        buf = io.BytesIO()
        image.save(buf, format="PNG")
        return buf.getvalue()
