"""
Router d'authentification : inscription, connexion, 2FA, mot de passe oublié.
Les erreurs métier (AuthError) sont converties en réponses JSON par main.py.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.database import get_db
from app.schemas.auth import (
    CurrentUser,
    LoginRequest,
    LoginResponse,
    MessageResponse,
    PasswordResetConfirm,
    PasswordResetRequest,
    RecoveryCodeRequest,
    RegisterRequest,
    RegisterResponse,
    TokenResponse,
    TwoFactorVerifyRequest,
)
from app.security import get_current_user
from app.services import auth_service
from app.services.token_service import TokenService, get_token_service

router = APIRouter(prefix="/api/v1/auth", tags=["Authentification"])


@router.post("/register", response_model=RegisterResponse, status_code=201,
             summary="Créer un compte")
def register(data: RegisterRequest, db: Session = Depends(get_db)):
    """
    Crée un compte avec 2FA.
    Le secret TOTP, le QR code et les 8 codes de récupération ne sont
    renvoyés qu'une seule fois : l'utilisateur doit les conserver.
    """
    return auth_service.register_user(db, data)


@router.post("/login", response_model=LoginResponse, response_model_exclude_none=True,
             summary="Se connecter")
def login(
    data: LoginRequest,
    db: Session = Depends(get_db),
    tokens: TokenService = Depends(get_token_service),
):
    """
    Vérifie email + mot de passe.
    - 2FA activée : `requires2FA: true` + `tempToken` (valable 10 minutes)
    - sinon : `token` de session
    """
    return auth_service.login_user(db, data, tokens)


@router.post("/2fa-verify", response_model=TokenResponse, summary="Valider le code 2FA")
def verify_two_factor(
    data: TwoFactorVerifyRequest,
    db: Session = Depends(get_db),
    tokens: TokenService = Depends(get_token_service),
):
    """Échange le jeton temporaire + code TOTP à 6 chiffres contre un jeton de session."""
    return auth_service.verify_two_factor(db, data, tokens)


@router.post("/2fa-recover", response_model=TokenResponse,
             summary="Se connecter avec un code de récupération")
def recover_two_factor(
    data: RecoveryCodeRequest,
    db: Session = Depends(get_db),
    tokens: TokenService = Depends(get_token_service),
):
    """Utilise un code de récupération (usage unique) à la place du code TOTP."""
    return auth_service.recover_with_code(db, data, tokens)


@router.post("/request-password-reset", response_model=MessageResponse,
             summary="Demander la réinitialisation du mot de passe")
def request_password_reset(data: PasswordResetRequest, db: Session = Depends(get_db)):
    """Réponse identique que l'email corresponde à un compte ou non."""
    return auth_service.request_password_reset(db, data)


@router.post("/reset-password/{token}", response_model=MessageResponse,
             summary="Réinitialiser le mot de passe")
def reset_password(token: str, data: PasswordResetConfirm, db: Session = Depends(get_db)):
    return auth_service.reset_password(db, token, data)


@router.get("/me", response_model=CurrentUser, summary="Utilisateur connecté")
def read_current_user(user: CurrentUser = Depends(get_current_user)):
    return user
