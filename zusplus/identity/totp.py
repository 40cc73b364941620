"""
TOTP-Hilfsfunktionen (pyotp + qrcode).
"""
from __future__ import annotations

import io
from urllib.parse import quote

import pyotp
import qrcode
from qrcode.image.svg import SvgPathImage


class TotpService:
    def __init__(self, issuer_name: str = "ZUSPlus", digits: int = 6, interval: int = 30):
        self.issuer_name = issuer_name
        self.digits = digits
        self.interval = interval

    def _totp(self, secret: str) -> pyotp.TOTP:
        return pyotp.TOTP(secret, digits=self.digits, interval=self.interval)

    def generate_secret(self) -> str:
        return pyotp.random_base32()

    def provisioning_uri(self, secret: str, account_name: str) -> str:
        return self._totp(secret).provisioning_uri(name=account_name, issuer_name=self.issuer_name)

    def qr_code_data_uri(self, uri: str) -> str:
        qr = qrcode.QRCode(
            version=1,
            error_correction=qrcode.constants.ERROR_CORRECT_L,
            box_size=10,
            border=4,
        )
        qr.add_data(uri)
        qr.make(fit=True)

        img = qr.make_image(image_factory=SvgPathImage)
        stream = io.BytesIO()
        img.save(stream)
        svg = stream.getvalue().decode("utf-8")
        return "data:image/svg+xml;utf-8," + quote(svg)

    def verify(self, secret: str, code: str, window: int = 1) -> bool:
        # window=1: ein Intervall Uhrendrift in beide Richtungen
        return self._totp(secret).verify(code, valid_window=window)

    def now(self, secret: str) -> str:
        return self._totp(secret).now()
