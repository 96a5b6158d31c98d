"""
Service métier d'authentification : inscription, connexion, double
authentification (TOTP ou code de récupération) et réinitialisation du mot de passe.

Flux de connexion :
  1. POST /login : email + mot de passe vérifiés
     - 2FA activée → jeton temporaire (twoFactorPending=true, 10 min)
     - sinon      → jeton de session complet
  2. POST /2fa-verify : jeton temporaire + code TOTP → jeton de session complet
     (ou POST /2fa-recover avec un code de récupération à usage unique)

Les validations de format sont faites par les schémas Pydantic, avant tout
calcul bcrypt ou HMAC. Les secrets (mot de passe, secret TOTP, codes de
récupération, jeton de réinitialisation) ne sont jamais journalisés.
"""

import logging
import secrets
import uuid
from datetime import datetime, timedelta, timezone

from sqlalchemy.orm import Session

from app.config import settings
from app.exceptions import ConflictError, InvalidInputError, NotFoundError, UnauthorizedError
from app.models.user import User
from app.schemas.auth import (
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
from app.services import email_service, password_service, totp_service, user_store
from app.services.token_service import TokenRejectedError, TokenService, is_pending

logger = logging.getLogger(__name__)

# Même message pour "email inconnu" et "mauvais mot de passe" (pas d'énumération)
INVALID_CREDENTIALS = "Identifiants invalides."
RESET_REQUESTED = (
    "Si un compte existe pour cet email, un lien de réinitialisation a été envoyé."
)


def register_user(db: Session, data: RegisterRequest) -> RegisterResponse:
    """
    Inscrit un nouvel utilisateur.

    Étapes :
    1. Vérifier que l'email est libre
    2. Hacher le mot de passe
    3. Générer le secret TOTP, l'URI otpauth et le QR code (QR optionnel)
    4. Générer 8 codes de récupération, hachés individuellement
    5. Persister le compte et les hash des codes
    6. Retourner secret, QR code et codes en clair, une seule fois

    Lève ConflictError si l'email est déjà utilisé.
    """
    if user_store.find_user_by_email(db, data.email) is not None:
        raise ConflictError("Cet email est déjà utilisé.")

    password_hash = password_service.hash_password(data.password)

    setup = totp_service.generate_secret(data.email)
    qr_code_data_url = totp_service.generate_qr_data_url(setup.provisioning_uri)

    recovery_codes = totp_service.generate_recovery_codes()
    recovery_hashes = [password_service.hash_password(code) for code in recovery_codes]

    user = user_store.insert_user(
        db,
        email=data.email,
        password_hash=password_hash,
        totp_secret=setup.secret,
        provisioning_uri=setup.provisioning_uri,
        recovery_code_hashes=recovery_hashes,
    )
    logger.info("Nouvel utilisateur inscrit : %s", user.id)

    return RegisterResponse(
        message=(
            "Inscription réussie. Configurez la 2FA avec le secret ou le QR code "
            "fourni et conservez vos codes de récupération."
        ),
        user_id=user.id,
        totp_secret=setup.secret,
        qr_code_data_url=qr_code_data_url,
        recovery_codes=recovery_codes,
    )


def login_user(db: Session, data: LoginRequest, tokens: TokenService) -> LoginResponse:
    """
    Vérifie email + mot de passe.
    Retourne un jeton temporaire si la 2FA est activée, sinon un jeton complet.
    Lève UnauthorizedError (message identique) si l'email est inconnu ou le mot de passe faux.
    """
    user = user_store.find_user_by_email(db, data.email)
    if user is None or not user.password_hash:
        # Même coût bcrypt que pour un compte existant
        password_service.verify_against_dummy(data.password)
        logger.warning("Connexion refusée : compte inconnu ou sans mot de passe")
        raise UnauthorizedError(INVALID_CREDENTIALS)

    if not password_service.verify_password(data.password, user.password_hash):
        logger.warning("Connexion refusée : mot de passe incorrect (utilisateur %s)", user.id)
        raise UnauthorizedError(INVALID_CREDENTIALS)

    if user.totp_secret and user.is_totp_enabled:
        return LoginResponse(
            message="Code 2FA requis.",
            requires_2fa=True,
            temp_token=tokens.issue_pending(user.id, user.email),
        )

    return LoginResponse(
        message="Connexion réussie.",
        requires_2fa=False,
        token=tokens.issue_full(user.id, user.email, user.role or "user"),
    )


def verify_two_factor(
    db: Session, data: TwoFactorVerifyRequest, tokens: TokenService
) -> TokenResponse:
    """
    Échange un jeton temporaire + code TOTP contre un jeton de session complet.

    Erreurs :
    - jeton temporaire invalide/expiré → UnauthorizedError
    - jeton valide mais pas "2FA en attente" → InvalidInputError
    - utilisateur supprimé entre-temps → NotFoundError
    - compte sans secret TOTP → InvalidInputError
    - code faux → UnauthorizedError (aucun compteur de tentatives)
    """
    user = _resolve_pending_user(db, data.temp_token, tokens)

    if not user.totp_secret:
        raise InvalidInputError("La 2FA n'est pas activée pour ce compte.")

    if not totp_service.verify_code(
        user.totp_secret, data.totp_code, window=settings.TOTP_VALID_WINDOW
    ):
        logger.warning("Code 2FA refusé pour l'utilisateur %s", user.id)
        raise UnauthorizedError("Code 2FA invalide.")

    user_store.enable_totp(db, user)
    logger.info("2FA vérifiée pour l'utilisateur %s", user.id)
    return TokenResponse(
        message="Vérification 2FA réussie.",
        token=tokens.issue_full(user.id, user.email, user.role or "user"),
    )


def recover_with_code(
    db: Session, data: RecoveryCodeRequest, tokens: TokenService
) -> TokenResponse:
    """
    Alternative au code TOTP (appareil perdu) : consomme un code de récupération.
    Chaque code n'est utilisable qu'une seule fois.
    """
    user = _resolve_pending_user(db, data.temp_token, tokens)

    for code in user_store.list_unused_recovery_codes(db, user.id):
        if password_service.verify_password(data.recovery_code, code.code_hash):
            if not user_store.mark_recovery_code_used(db, code):
                # Consommé par une requête concurrente entre la lecture et l'UPDATE
                break
            logger.info("Code de récupération utilisé par l'utilisateur %s", user.id)
            return TokenResponse(
                message="Connexion par code de récupération réussie.",
                token=tokens.issue_full(user.id, user.email, user.role or "user"),
            )

    logger.warning("Code de récupération refusé pour l'utilisateur %s", user.id)
    raise UnauthorizedError("Code de récupération invalide.")


def request_password_reset(db: Session, data: PasswordResetRequest) -> MessageResponse:
    """
    Génère un jeton de réinitialisation (haché en base, valable 1h) et l'envoie par email.
    La réponse est identique que le compte existe ou non.
    """
    user = user_store.find_user_by_email(db, data.email)
    if user is None:
        return MessageResponse(message=RESET_REQUESTED)

    raw_token = secrets.token_hex(32)
    expires_at = datetime.now(timezone.utc) + timedelta(
        minutes=settings.PASSWORD_RESET_EXPIRE_MINUTES
    )
    user_store.update_user_reset_challenge(
        db, user.id, password_service.hash_password(raw_token), expires_at
    )

    reset_link = f"{settings.FRONTEND_URL.rstrip('/')}/reset-password/{raw_token}"
    try:
        email_service.send_password_reset_email(user.email, reset_link)
    except Exception as exc:
        # Réponse identique à celle d'un email inconnu
        logger.error("Envoi de l'email de réinitialisation impossible (%s) : %s", user.id, exc)
        user_store.clear_reset_challenge(db, user.id)

    return MessageResponse(message=RESET_REQUESTED)


def reset_password(db: Session, token: str, data: PasswordResetConfirm) -> MessageResponse:
    """
    Remplace le mot de passe si le jeton correspond à une demande non expirée.

    Le jeton étant haché en base, il ne peut pas être cherché par égalité :
    on compare (bcrypt) avec chaque demande encore active.
    Lève InvalidInputError si aucune demande active ne correspond.
    """
    token = (token or "").strip()
    if not token:
        raise InvalidInputError("Jeton de réinitialisation manquant.")

    now = datetime.now(timezone.utc)
    match = None
    for user in user_store.list_users_with_active_reset_challenge(db, now):
        if not _challenge_active(user, now):
            continue
        if password_service.verify_password(token, user.reset_password_token_hash):
            match = user
            break

    if match is None:
        raise InvalidInputError("Le jeton de réinitialisation est invalide ou a expiré.")

    user_store.complete_password_reset(
        db, match.id, password_service.hash_password(data.password)
    )
    logger.info("Mot de passe réinitialisé pour l'utilisateur %s", match.id)
    return MessageResponse(message="Le mot de passe a été réinitialisé.")


def _resolve_pending_user(db: Session, temp_token: str, tokens: TokenService) -> User:
    """Vérifie le jeton temporaire et recharge l'utilisateur qu'il désigne."""
    try:
        claims = tokens.verify(temp_token)
    except TokenRejectedError:
        raise UnauthorizedError("Jeton temporaire invalide ou expiré.")

    if not is_pending(claims):
        raise InvalidInputError("Aucune vérification 2FA en attente pour ce jeton.")

    user = user_store.find_user_by_id(db, uuid.UUID(claims["userId"]))
    if user is None:
        raise NotFoundError("Utilisateur introuvable.")
    return user


def _challenge_active(user: User, now: datetime) -> bool:
    expires = user.reset_password_expires
    if not user.reset_password_token_hash or expires is None:
        return False
    if expires.tzinfo is None:
        expires = expires.replace(tzinfo=timezone.utc)
    return expires > now
