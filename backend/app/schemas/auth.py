"""
Schémas Pydantic pour l'authentification (inscription, connexion, 2FA,
réinitialisation du mot de passe).

Les champs JSON sont en camelCase (contrat de l'application React) ;
populate_by_name permet de construire les objets en snake_case côté Python.
"""

import uuid
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator
from pydantic.alias_generators import to_camel

from app.services.password_service import MAX_PASSWORD_BYTES, MIN_PASSWORD_LENGTH
from app.services.totp_service import is_valid_code_format


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


def _check_new_password(v: str) -> str:
    if len(v) < MIN_PASSWORD_LENGTH:
        raise ValueError(
            f"Le mot de passe doit contenir au moins {MIN_PASSWORD_LENGTH} caractères."
        )
    if len(v.encode("utf-8")) > MAX_PASSWORD_BYTES:
        raise ValueError(f"Le mot de passe ne peut pas dépasser {MAX_PASSWORD_BYTES} octets.")
    return v


class RegisterRequest(CamelModel):
    email: EmailStr
    password: str

    @field_validator("email")
    @classmethod
    def email_lowercase(cls, v: str) -> str:
        return v.strip().lower()

    @field_validator("password")
    @classmethod
    def password_strong_enough(cls, v: str) -> str:
        return _check_new_password(v)


class RegisterResponse(CamelModel):
    """Secret TOTP, QR code et codes de récupération : transmis une seule fois."""
    message: str
    user_id: uuid.UUID
    totp_secret: str
    qr_code_data_url: str = Field(alias="qrCodeDataURL")
    recovery_codes: List[str]


class LoginRequest(CamelModel):
    email: EmailStr
    password: str

    @field_validator("email")
    @classmethod
    def email_lowercase(cls, v: str) -> str:
        return v.strip().lower()

    @field_validator("password")
    @classmethod
    def password_not_empty(cls, v: str) -> str:
        if not v:
            raise ValueError("Le mot de passe est obligatoire.")
        return v


class LoginResponse(CamelModel):
    """Soit `token` (connexion terminée), soit `temp_token` (code 2FA attendu)."""
    message: str
    requires_2fa: bool = Field(alias="requires2FA")
    token: Optional[str] = None
    temp_token: Optional[str] = None


class TwoFactorVerifyRequest(CamelModel):
    temp_token: str
    totp_code: str

    @field_validator("temp_token")
    @classmethod
    def temp_token_not_empty(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Le jeton temporaire est obligatoire.")
        return v.strip()

    @field_validator("totp_code")
    @classmethod
    def totp_code_six_digits(cls, v: str) -> str:
        if not is_valid_code_format(v):
            raise ValueError("Format du code 2FA invalide : 6 chiffres attendus.")
        return v


class RecoveryCodeRequest(CamelModel):
    temp_token: str
    recovery_code: str

    @field_validator("temp_token")
    @classmethod
    def temp_token_not_empty(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Le jeton temporaire est obligatoire.")
        return v.strip()

    @field_validator("recovery_code")
    @classmethod
    def recovery_code_not_empty(cls, v: str) -> str:
        # Saisie tolérante : espaces et minuscules acceptés
        code = v.replace(" ", "").replace("-", "").upper()
        if not code:
            raise ValueError("Le code de récupération est obligatoire.")
        return code


class TokenResponse(CamelModel):
    message: str
    token: str


class PasswordResetRequest(CamelModel):
    email: EmailStr

    @field_validator("email")
    @classmethod
    def email_lowercase(cls, v: str) -> str:
        return v.strip().lower()


class PasswordResetConfirm(CamelModel):
    password: str

    @field_validator("password")
    @classmethod
    def password_strong_enough(cls, v: str) -> str:
        return _check_new_password(v)


class MessageResponse(BaseModel):
    message: str


class CurrentUser(CamelModel):
    """Identité extraite d'un jeton de session complet."""
    user_id: uuid.UUID
    email: str
    role: str = "user"
