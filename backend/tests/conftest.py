"""
Configuration partagée pour tous les tests.
Override la dépendance get_db pour éviter toute connexion réelle à PostgreSQL.
"""

import os

# Coût bcrypt minimal pour des tests rapides (doit précéder l'import de app.config)
os.environ.setdefault("BCRYPT_ROUNDS", "4")

import pytest
from fastapi.testclient import TestClient
from unittest.mock import MagicMock

from app.database import get_db
from app.main import app
from app.services.token_service import TokenService

TEST_SECRET = "test-secret-key-with-at-least-32-bytes!!"


@pytest.fixture
def mock_db():
    return MagicMock()


@pytest.fixture
def client(mock_db):
    """Client HTTP de test avec la BDD mockée."""
    app.dependency_overrides[get_db] = lambda: mock_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def token_service():
    return TokenService(secret_key=TEST_SECRET, access_expire_minutes=60, temp_expire_minutes=10)
