"""
Configuration partagée pour tous les tests.
Override la dépendance get_db pour éviter toute connexion réelle à PostgreSQL,
et vide la clé du service d'image pour qu'aucun test n'appelle le réseau.
"""

import pytest
from fastapi.testclient import TestClient
from unittest.mock import MagicMock

from app.config import settings
from app.database import get_db
from app.main import app


@pytest.fixture(autouse=True)
def no_vision_api_key(monkeypatch):
    monkeypatch.setattr(settings, "VISION_API_KEY", "")


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
