"""
Erreurs métier du module d'authentification.

Chaque erreur porte le code HTTP correspondant ; main.py les convertit en
réponse JSON {"detail": message}. Les messages sont volontairement génériques
pour les erreurs 401 (pas d'énumération des comptes).
"""


class AuthError(Exception):
    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidInputError(AuthError):
    """Requête invalide, le client doit la corriger (400)."""
    status_code = 400


class UnauthorizedError(AuthError):
    """Identifiants ou jeton refusés (401)."""
    status_code = 401


class NotFoundError(AuthError):
    status_code = 404


class ConflictError(AuthError):
    """Ressource déjà existante, ex. email déjà utilisé (409)."""
    status_code = 409


class ForbiddenError(AuthError):
    """Authentifié mais rôle insuffisant (403)."""
    status_code = 403
