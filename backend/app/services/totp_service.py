"""
Moteur TOTP (RFC 6238) pour la double authentification.

- Secret partagé base32 de 20 octets, généré à l'inscription
- Codes à 6 chiffres, pas de 30 secondes (valeurs par défaut de pyotp,
  identiques à celles annoncées dans l'URI otpauth://)
- Tolérance de décalage d'horloge : ±1 pas par défaut
- Aucune mémoire des codes déjà utilisés : un code reste valable pendant sa fenêtre
"""

import base64
import io
import logging
import re
import secrets
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional, Union

import pyotp
import qrcode

from app.config import settings

logger = logging.getLogger(__name__)

SECRET_LENGTH = 32  # caractères base32 = 20 octets
RECOVERY_CODE_COUNT = 8
_CODE_PATTERN = re.compile(r"[0-9]{6}")


@dataclass(frozen=True)
class TotpSetup:
    secret: str
    provisioning_uri: str


def generate_secret(account_label: str) -> TotpSetup:
    """
    Génère un nouveau secret TOTP et l'URI otpauth:// à encoder dans un QR code.
    Le label (l'email de l'utilisateur) distingue le compte dans l'application
    d'authentification, l'émetteur est le nom de l'application.
    """
    secret = pyotp.random_base32(length=SECRET_LENGTH)
    uri = pyotp.TOTP(secret).provisioning_uri(name=account_label, issuer_name=settings.APP_NAME)
    return TotpSetup(secret=secret, provisioning_uri=uri)


def is_valid_code_format(code: str) -> bool:
    """Vrai uniquement pour exactement 6 chiffres ASCII."""
    return isinstance(code, str) and _CODE_PATTERN.fullmatch(code) is not None


def verify_code(
    secret: str,
    code: str,
    window: int = 1,
    for_time: Optional[Union[int, datetime]] = None,
) -> bool:
    """
    Vérifie un code TOTP pour le pas courant et les `window` pas adjacents.
    Le format est contrôlé avant tout calcul HMAC.
    """
    if not is_valid_code_format(code):
        return False
    return pyotp.TOTP(secret).verify(code, for_time=for_time, valid_window=window)


def generate_qr_data_url(uri: str) -> str:
    """
    Génère le QR code PNG de l'URI sous forme de data URL.
    En cas d'échec, l'erreur est journalisée et une chaîne vide est retournée :
    l'utilisateur peut toujours saisir le secret manuellement.
    """
    try:
        qr = qrcode.QRCode(box_size=10, border=4)
        qr.add_data(uri)
        qr.make(fit=True)
        img = qr.make_image(fill_color="black", back_color="white")
        buf = io.BytesIO()
        img.save(buf, format="PNG")
    except Exception as exc:
        logger.error("Génération du QR code 2FA impossible : %s", exc)
        return ""
    return "data:image/png;base64," + base64.b64encode(buf.getvalue()).decode("ascii")


def generate_recovery_codes(count: int = RECOVERY_CODE_COUNT) -> List[str]:
    """Codes de secours lisibles : 8 caractères hexadécimaux en majuscules."""
    return [secrets.token_hex(4).upper() for _ in range(count)]
