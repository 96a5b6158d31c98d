"""
Tests d'intégration API pour l'authentification.
Testent les URLs, les codes HTTP, la validation et le format des réponses.
"""

import uuid
from unittest.mock import MagicMock, patch

from fastapi.testclient import TestClient

from app.exceptions import ConflictError, InvalidInputError, NotFoundError, UnauthorizedError
from app.main import app
from app.models.user import User
from app.schemas.auth import LoginResponse, MessageResponse, RegisterResponse, TokenResponse
from app.services.auth_service import INVALID_CREDENTIALS, RESET_REQUESTED
from app.services.password_service import hash_password


# --- Helpers ---

def make_db_user(password="longenoughpw"):
    user = MagicMock(spec=User)
    user.id = uuid.uuid4()
    user.email = "a@b.com"
    user.role = "user"
    user.password_hash = hash_password(password)
    user.totp_secret = None
    user.is_totp_enabled = False
    return user


def make_register_response(**kwargs) -> RegisterResponse:
    return RegisterResponse(
        message="Inscription réussie.",
        user_id=kwargs.get("user_id", uuid.uuid4()),
        totp_secret=kwargs.get("totp_secret", "JBSWY3DPEHPK3PXPJBSWY3DPEHPK3PXP"),
        qr_code_data_url=kwargs.get("qr_code_data_url", "data:image/png;base64,AAAA"),
        recovery_codes=kwargs.get("recovery_codes", ["0A1B2C3D"] * 8),
    )


# ============================================================
# POST /api/v1/auth/register
# ============================================================

def test_register_succes(client):
    """Inscription valide → 201 avec secret, QR code et codes en camelCase."""
    with patch("app.routers.auth.auth_service.register_user") as mock:
        mock.return_value = make_register_response()

        response = client.post("/api/v1/auth/register", json={
            "email": "a@b.com",
            "password": "longenoughpw",
        })

    assert response.status_code == 201
    body = response.json()
    assert set(body) == {"message", "userId", "totpSecret", "qrCodeDataURL", "recoveryCodes"}
    assert len(body["recoveryCodes"]) == 8


def test_register_mot_de_passe_court(client):
    """Mot de passe < 10 caractères → 400 sans appeler le service."""
    with patch("app.routers.auth.auth_service.register_user") as mock:
        response = client.post("/api/v1/auth/register", json={
            "email": "a@b.com",
            "password": "short",
        })
    assert response.status_code == 400
    assert "10 caractères" in response.json()["detail"]
    mock.assert_not_called()


def test_register_email_invalide(client):
    response = client.post("/api/v1/auth/register", json={
        "email": "pas-un-email",
        "password": "longenoughpw",
    })
    assert response.status_code == 400


def test_register_champ_manquant(client):
    response = client.post("/api/v1/auth/register", json={"email": "a@b.com"})
    assert response.status_code == 400
    assert "password" in response.json()["detail"]


def test_register_email_deja_utilise(client):
    with patch("app.routers.auth.auth_service.register_user") as mock:
        mock.side_effect = ConflictError("Cet email est déjà utilisé.")
        response = client.post("/api/v1/auth/register", json={
            "email": "a@b.com",
            "password": "longenoughpw",
        })
    assert response.status_code == 409
    assert response.json() == {"detail": "Cet email est déjà utilisé."}


# ============================================================
# POST /api/v1/auth/login
# ============================================================

def test_login_2fa_requise(client):
    with patch("app.routers.auth.auth_service.login_user") as mock:
        mock.return_value = LoginResponse(message="Code 2FA requis.", requires_2fa=True, temp_token="tmp")
        response = client.post("/api/v1/auth/login", json={
            "email": "a@b.com",
            "password": "longenoughpw",
        })

    assert response.status_code == 200
    assert response.json() == {"message": "Code 2FA requis.", "requires2FA": True, "tempToken": "tmp"}


def test_login_sans_2fa(client):
    with patch("app.routers.auth.auth_service.login_user") as mock:
        mock.return_value = LoginResponse(message="Connexion réussie.", requires_2fa=False, token="jwt")
        response = client.post("/api/v1/auth/login", json={
            "email": "a@b.com",
            "password": "longenoughpw",
        })

    assert response.status_code == 200
    assert response.json()["token"] == "jwt"
    assert response.json()["requires2FA"] is False
    assert "tempToken" not in response.json()


def test_login_erreurs_identiques(client):
    """Email inconnu et mauvais mot de passe : même code, même corps, octet pour octet."""
    with patch("app.services.auth_service.user_store.find_user_by_email", return_value=None):
        unknown = client.post("/api/v1/auth/login", json={
            "email": "nobody@b.com",
            "password": "longenoughpw",
        })

    with patch("app.services.auth_service.user_store.find_user_by_email",
               return_value=make_db_user(password="longenoughpw")):
        wrong = client.post("/api/v1/auth/login", json={
            "email": "a@b.com",
            "password": "wrong-password",
        })

    assert unknown.status_code == wrong.status_code == 401
    assert unknown.content == wrong.content
    assert unknown.json() == {"detail": INVALID_CREDENTIALS}


def test_login_mot_de_passe_vide(client):
    response = client.post("/api/v1/auth/login", json={"email": "a@b.com", "password": ""})
    assert response.status_code == 400


# ============================================================
# POST /api/v1/auth/2fa-verify
# ============================================================

def test_2fa_verify_succes(client):
    with patch("app.routers.auth.auth_service.verify_two_factor") as mock:
        mock.return_value = TokenResponse(message="Vérification 2FA réussie.", token="jwt")
        response = client.post("/api/v1/auth/2fa-verify", json={
            "tempToken": "tmp",
            "totpCode": "123456",
        })
    assert response.status_code == 200
    assert response.json()["token"] == "jwt"


def test_2fa_verify_code_mal_forme(client):
    with patch("app.routers.auth.auth_service.verify_two_factor") as mock:
        response = client.post("/api/v1/auth/2fa-verify", json={
            "tempToken": "tmp",
            "totpCode": "12345",
        })
    assert response.status_code == 400
    assert "6 chiffres" in response.json()["detail"]
    mock.assert_not_called()


def test_2fa_verify_jeton_manquant(client):
    response = client.post("/api/v1/auth/2fa-verify", json={"totpCode": "123456"})
    assert response.status_code == 400
    assert "tempToken" in response.json()["detail"]


def test_2fa_verify_codes_erreur(client):
    """401 jeton/code refusé, 400 non en attente, 404 utilisateur disparu."""
    cases = [
        (UnauthorizedError("Code 2FA invalide."), 401),
        (InvalidInputError("Aucune vérification 2FA en attente pour ce jeton."), 400),
        (NotFoundError("Utilisateur introuvable."), 404),
    ]
    for error, status in cases:
        with patch("app.routers.auth.auth_service.verify_two_factor", side_effect=error):
            response = client.post("/api/v1/auth/2fa-verify", json={
                "tempToken": "tmp",
                "totpCode": "123456",
            })
        assert response.status_code == status
        assert response.json()["detail"] == error.message


def test_2fa_recover_succes(client):
    with patch("app.routers.auth.auth_service.recover_with_code") as mock:
        mock.return_value = TokenResponse(message="ok", token="jwt")
        response = client.post("/api/v1/auth/2fa-recover", json={
            "tempToken": "tmp",
            "recoveryCode": "0A1B2C3D",
        })
    assert response.status_code == 200
    assert mock.call_args.args[1].recovery_code == "0A1B2C3D"


# ============================================================
# Mot de passe oublié
# ============================================================

def test_request_password_reset_message_generique(client):
    with patch("app.routers.auth.auth_service.request_password_reset") as mock:
        mock.return_value = MessageResponse(message=RESET_REQUESTED)
        response = client.post("/api/v1/auth/request-password-reset", json={"email": "a@b.com"})
    assert response.status_code == 200
    assert response.json() == {"message": RESET_REQUESTED}


def test_request_password_reset_email_connu_ou_inconnu_identique(client):
    with patch("app.services.auth_service.user_store.find_user_by_email", return_value=None):
        unknown = client.post("/api/v1/auth/request-password-reset", json={"email": "x@b.com"})

    with patch("app.services.auth_service.user_store.find_user_by_email",
               return_value=make_db_user()), \
         patch("app.services.auth_service.user_store.update_user_reset_challenge"), \
         patch("app.services.auth_service.email_service.send_password_reset_email"):
        known = client.post("/api/v1/auth/request-password-reset", json={"email": "a@b.com"})

    assert unknown.status_code == known.status_code == 200
    assert unknown.content == known.content


def test_request_password_reset_email_invalide(client):
    response = client.post("/api/v1/auth/request-password-reset", json={"email": "nope"})
    assert response.status_code == 400


def test_reset_password_succes(client):
    with patch("app.routers.auth.auth_service.reset_password") as mock:
        mock.return_value = MessageResponse(message="Le mot de passe a été réinitialisé.")
        response = client.post("/api/v1/auth/reset-password/abc123", json={"password": "newpassword1"})
    assert response.status_code == 200
    assert mock.call_args.args[1] == "abc123"


def test_reset_password_jeton_invalide(client):
    with patch("app.routers.auth.auth_service.reset_password") as mock:
        mock.side_effect = InvalidInputError("Le jeton de réinitialisation est invalide ou a expiré.")
        response = client.post("/api/v1/auth/reset-password/abc123", json={"password": "newpassword1"})
    assert response.status_code == 400


def test_reset_password_mot_de_passe_court(client):
    with patch("app.routers.auth.auth_service.reset_password") as mock:
        response = client.post("/api/v1/auth/reset-password/abc123", json={"password": "short"})
    assert response.status_code == 400
    mock.assert_not_called()


# ============================================================
# Erreurs inattendues
# ============================================================

def test_erreur_interne_500(mock_db):
    from app.config import settings
    from app.database import get_db

    app.dependency_overrides[get_db] = lambda: mock_db
    try:
        with TestClient(app, raise_server_exceptions=False) as c, \
             patch("app.routers.auth.auth_service.register_user", side_effect=RuntimeError("db down")), \
             patch.object(settings, "ENV", "production"):
            response = c.post("/api/v1/auth/register", json={
                "email": "a@b.com",
                "password": "longenoughpw",
            })
    finally:
        app.dependency_overrides.clear()

    assert response.status_code == 500
    assert response.json() == {"detail": "Une erreur interne est survenue."}
    assert "db down" not in response.text


def test_erreur_interne_500_detail_en_developpement(mock_db):
    from app.config import settings
    from app.database import get_db

    app.dependency_overrides[get_db] = lambda: mock_db
    try:
        with TestClient(app, raise_server_exceptions=False) as c, \
             patch("app.routers.auth.auth_service.register_user", side_effect=RuntimeError("db down")), \
             patch.object(settings, "ENV", "development"):
            response = c.post("/api/v1/auth/register", json={
                "email": "a@b.com",
                "password": "longenoughpw",
            })
    finally:
        app.dependency_overrides.clear()

    assert response.status_code == 500
    assert "db down" in response.json()["error"]


def test_env_par_defaut_sans_detail_des_erreurs(monkeypatch):
    """Sans variable ENV, le détail des erreurs 500 n'est pas exposé."""
    from app.config import Settings

    monkeypatch.delenv("ENV", raising=False)
    assert Settings(_env_file=None).ENV == "production"


def test_health(client):
    assert client.get("/api/health").json()["status"] == "ok"
