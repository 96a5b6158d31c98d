"""
Accès aux comptes utilisateurs (credential store).

Seul point de contact entre le module d'authentification et la base :
les services métier ne construisent jamais de requête eux-mêmes.
"""

import logging
import uuid
from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.exceptions import ConflictError
from app.models.user import RecoveryCode, User

logger = logging.getLogger(__name__)


def normalize_email(email: str) -> str:
    return email.strip().lower()


def find_user_by_email(db: Session, email: str) -> Optional[User]:
    return db.execute(
        select(User).where(User.email == normalize_email(email))
    ).scalar()


def find_user_by_id(db: Session, user_id: uuid.UUID) -> Optional[User]:
    return db.get(User, user_id)


def insert_user(
    db: Session,
    email: str,
    password_hash: str,
    totp_secret: str,
    provisioning_uri: str,
    recovery_code_hashes: Optional[List[str]] = None,
) -> User:
    """
    Crée le compte et ses codes de récupération dans une seule transaction.

    La contrainte UNIQUE sur users.email ferme la fenêtre de concurrence entre
    deux inscriptions simultanées : la seconde lève IntegrityError → ConflictError.
    """
    user = User(
        email=normalize_email(email),
        password_hash=password_hash,
        totp_secret=totp_secret,
        totp_auth_url=provisioning_uri,
        is_totp_enabled=True,
        role="user",
    )
    user.recovery_codes = [RecoveryCode(code_hash=h) for h in (recovery_code_hashes or [])]
    db.add(user)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise ConflictError("Cet email est déjà utilisé.")
    db.refresh(user)
    return user


def update_user_password(
    db: Session, user_id: uuid.UUID, new_hash: str, clear_reset: bool = False
) -> None:
    values = {"password_hash": new_hash}
    if clear_reset:
        values.update(reset_password_token_hash=None, reset_password_expires=None)
    db.execute(update(User).where(User.id == user_id).values(**values))
    db.commit()


def complete_password_reset(db: Session, user_id: uuid.UUID, new_hash: str) -> None:
    """Nouveau mot de passe et suppression de la demande de réinitialisation en un seul UPDATE."""
    update_user_password(db, user_id, new_hash, clear_reset=True)


def update_user_reset_challenge(
    db: Session, user_id: uuid.UUID, token_hash: str, expires_at: datetime
) -> None:
    """Remplace toute demande de réinitialisation précédente (une seule active par compte)."""
    db.execute(
        update(User)
        .where(User.id == user_id)
        .values(reset_password_token_hash=token_hash, reset_password_expires=expires_at)
    )
    db.commit()


def clear_reset_challenge(db: Session, user_id: uuid.UUID) -> None:
    db.execute(
        update(User)
        .where(User.id == user_id)
        .values(reset_password_token_hash=None, reset_password_expires=None)
    )
    db.commit()


def list_users_with_active_reset_challenge(
    db: Session, now: Optional[datetime] = None
) -> List[User]:
    """Comptes dont le hash de réinitialisation existe et n'a pas encore expiré."""
    now = now or datetime.now(timezone.utc)
    return db.execute(
        select(User).where(
            User.reset_password_token_hash.is_not(None),
            User.reset_password_expires > now,
        )
    ).scalars().all()


def clear_expired_reset_challenges(db: Session, now: Optional[datetime] = None) -> int:
    """Efface les demandes de réinitialisation expirées. Retourne le nombre de comptes nettoyés."""
    now = now or datetime.now(timezone.utc)
    result = db.execute(
        update(User)
        .where(
            User.reset_password_token_hash.is_not(None),
            User.reset_password_expires <= now,
        )
        .values(reset_password_token_hash=None, reset_password_expires=None)
    )
    db.commit()
    return result.rowcount or 0


def enable_totp(db: Session, user: User) -> None:
    if not user.is_totp_enabled:
        user.is_totp_enabled = True
        db.commit()


def list_unused_recovery_codes(db: Session, user_id: uuid.UUID) -> List[RecoveryCode]:
    return db.execute(
        select(RecoveryCode).where(
            RecoveryCode.user_id == user_id,
            RecoveryCode.used_at.is_(None),
        )
    ).scalars().all()


def mark_recovery_code_used(db: Session, code: RecoveryCode) -> bool:
    """
    Consomme le code si personne ne l'a fait entre-temps.
    Le UPDATE conditionnel garantit l'usage unique entre requêtes concurrentes :
    retourne False si le code était déjà utilisé.
    """
    result = db.execute(
        update(RecoveryCode)
        .where(RecoveryCode.id == code.id, RecoveryCode.used_at.is_(None))
        .values(used_at=datetime.now(timezone.utc))
    )
    db.commit()
    return result.rowcount == 1
