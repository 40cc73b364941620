# zusplus/utils/crypto_utils.py
from __future__ import annotations

from typing import Optional

from cryptography.fernet import Fernet, InvalidToken


class SecretCipher:
    """
    Verschlüsselt TOTP-Secrets für die Ablage in der DB.
    Ohne Key (TOTP_SECRET_FERNET_KEY leer) werden Werte im Klartext abgelegt.
    """

    def __init__(self, key: Optional[str] = None):
        self._fernet = Fernet(key.encode()) if key else None

    @property
    def enabled(self) -> bool:
        return self._fernet is not None

    def encrypt_text(self, plaintext: str) -> str:
        if self._fernet is None:
            return plaintext
        return self._fernet.encrypt(plaintext.encode("utf-8")).decode("utf-8")

    def decrypt_text(self, token: str) -> str:
        if self._fernet is None:
            return token
        try:
            return self._fernet.decrypt(token.encode("utf-8")).decode("utf-8")
        except InvalidToken:
            # Altbestand (noch Klartext aus der Zeit ohne Key)
            return token
