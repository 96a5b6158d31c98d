"""
Dépendance FastAPI protégeant les routes authentifiées.

Lit l'en-tête `Authorization: Bearer <jeton>`, vérifie le jeton et refuse
explicitement les jetons "2FA en attente", même valides et non expirés.
"""

import uuid
from typing import Callable, Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from app.exceptions import ForbiddenError, UnauthorizedError
from app.schemas.auth import CurrentUser
from app.services.token_service import (
    TokenRejectedError,
    TokenService,
    get_token_service,
    is_pending,
)

bearer_scheme = HTTPBearer(auto_error=False)


def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    tokens: TokenService = Depends(get_token_service),
) -> CurrentUser:
    if credentials is None or not credentials.credentials:
        raise UnauthorizedError("Vous n'êtes pas connecté.")

    try:
        claims = tokens.verify(credentials.credentials)
    except TokenRejectedError:
        raise UnauthorizedError("Jeton invalide ou expiré. Veuillez vous reconnecter.")

    if is_pending(claims):
        raise UnauthorizedError("La double authentification est requise.")

    return CurrentUser(
        user_id=uuid.UUID(claims["userId"]),
        email=claims["email"],
        role=claims.get("role") or "user",
    )


def require_role(*roles: str) -> Callable[..., CurrentUser]:
    """
    Fabrique une dépendance limitant la route aux rôles donnés.

    Usage :
        @router.get("/admin/...")
        def admin_route(user: CurrentUser = Depends(require_role("admin"))):
            ...
    """

    def role_checker(user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
        if user.role not in roles:
            raise ForbiddenError("Vous n'avez pas la permission d'effectuer cette action.")
        return user

    return role_checker
