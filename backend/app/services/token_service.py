"""
Émission et vérification des jetons de session JWT (HS256).

Deux variantes :
- jeton complet : userId, email, role, session authentifiée
- jeton "2FA en attente" : userId, email, twoFactorPending=true, durée courte,
  uniquement accepté par les routes de vérification 2FA

Aucun état n'est persisté : la validité dépend uniquement de la signature et
de l'expiration embarquée.
"""

import uuid
from datetime import datetime, timedelta, timezone

import jwt

from app.config import settings

PENDING_CLAIM = "twoFactorPending"
_REQUIRED_CLAIMS = ("userId", "email")


class TokenRejectedError(Exception):
    """Signature invalide, jeton expiré ou contenu mal formé."""


class TokenService:
    def __init__(
        self,
        secret_key: str,
        algorithm: str = "HS256",
        access_expire_minutes: int = 60,
        temp_expire_minutes: int = 10,
    ):
        if not secret_key:
            raise ValueError("La clé de signature JWT ne peut pas être vide.")
        self._secret_key = secret_key
        self._algorithm = algorithm
        self._access_expire = timedelta(minutes=access_expire_minutes)
        self._temp_expire = timedelta(minutes=temp_expire_minutes)

    def issue_full(self, user_id: uuid.UUID, email: str, role: str = "user") -> str:
        """Jeton de session complet, délivré après authentification terminée."""
        return self._encode(
            {"userId": str(user_id), "email": email, "role": role or "user"},
            self._access_expire,
        )

    def issue_pending(self, user_id: uuid.UUID, email: str) -> str:
        """Jeton temporaire : mot de passe vérifié, code TOTP encore attendu."""
        return self._encode(
            {"userId": str(user_id), "email": email, PENDING_CLAIM: True},
            self._temp_expire,
        )

    def verify(self, token: str) -> dict:
        """
        Décode le jeton et retourne ses claims.
        Lève TokenRejectedError si la signature, l'expiration ou le contenu est invalide.
        """
        try:
            claims = jwt.decode(
                token,
                self._secret_key,
                algorithms=[self._algorithm],
                options={"require": ["exp", "iat"]},
            )
        except jwt.InvalidTokenError as exc:
            raise TokenRejectedError(str(exc)) from exc

        if not all(claims.get(name) for name in _REQUIRED_CLAIMS):
            raise TokenRejectedError("Claims obligatoires manquants.")
        try:
            uuid.UUID(str(claims["userId"]))
        except ValueError as exc:
            raise TokenRejectedError("Identifiant utilisateur invalide.") from exc
        return claims

    def _encode(self, claims: dict, lifetime: timedelta) -> str:
        now = datetime.now(timezone.utc)
        payload = {**claims, "iat": now, "exp": now + lifetime}
        return jwt.encode(payload, self._secret_key, algorithm=self._algorithm)


def is_pending(claims: dict) -> bool:
    """Vrai si le jeton attend encore la vérification du code 2FA."""
    return bool(claims.get(PENDING_CLAIM))


def get_token_service() -> TokenService:
    """Dépendance FastAPI : service de jetons configuré depuis les settings."""
    return TokenService(
        secret_key=settings.SECRET_KEY,
        algorithm=settings.ALGORITHM,
        access_expire_minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES,
        temp_expire_minutes=settings.TEMP_TOKEN_EXPIRE_MINUTES,
    )
