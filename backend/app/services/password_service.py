"""
Hachage des mots de passe et des secrets à usage unique (bcrypt).

Utilisé pour les mots de passe, les codes de récupération 2FA et les jetons
de réinitialisation : tous sont stockés uniquement sous forme de hash.
"""

import secrets
from functools import lru_cache

import bcrypt

from app.config import settings

MIN_PASSWORD_LENGTH = 10
# bcrypt ignore (ou refuse selon la version) tout ce qui dépasse 72 octets
MAX_PASSWORD_BYTES = 72


def hash_password(plaintext: str) -> str:
    """Retourne le hash bcrypt (sel inclus) du texte donné."""
    salt = bcrypt.gensalt(rounds=settings.BCRYPT_ROUNDS)
    return bcrypt.hashpw(plaintext.encode("utf-8"), salt).decode("utf-8")


def verify_password(plaintext: str, hashed: str) -> bool:
    """
    Compare un texte clair avec un hash bcrypt.
    Un hash absent ou mal formé est traité comme une non-correspondance.
    """
    if not hashed:
        return False
    try:
        return bcrypt.checkpw(plaintext.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        return False


@lru_cache(maxsize=1)
def _dummy_hash() -> str:
    return hash_password(secrets.token_hex(16))


def verify_against_dummy(plaintext: str) -> bool:
    """
    Vérification bcrypt sur un hash factice, pour les comptes inconnus :
    même coût qu'une vraie vérification, résultat toujours False.
    """
    verify_password(plaintext, _dummy_hash())
    return False
