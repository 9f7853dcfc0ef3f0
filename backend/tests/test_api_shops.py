"""
Tests d'intégration API pour les boutiques et les utilisateurs.
Testent /api/v1/shops (CRUD, assignation, compteurs, remise à zéro)
      /api/v1/users
"""

import uuid
from datetime import datetime
from unittest.mock import patch

from app.exceptions import AssignmentConflictError, RoleNotAllowedError
from app.schemas.shop import ResetVisitsResult, ShopAssignResult, ShopResponse, VisitCounts
from app.schemas.user import UserResponse


# --- Helpers ---

def make_shop_response(**kwargs) -> ShopResponse:
    return ShopResponse(
        id=kwargs.get("id", uuid.uuid4()),
        name=kwargs.get("name", "Kirana Store"),
        address=kwargs.get("address", None),
        latitude=kwargs.get("latitude", 12.9716),
        longitude=kwargs.get("longitude", 77.5946),
        visit=kwargs.get("visit", False),
    )


# ============================================================
# /api/v1/shops
# ============================================================

def test_create_shop_succes(client):
    with patch("app.routers.shops.shop_service.create_shop") as mock:
        mock.return_value = make_shop_response(name="Kirana Store")
        response = client.post(
            "/api/v1/shops",
            json={"name": "Kirana Store", "latitude": 12.9716, "longitude": 77.5946},
        )

    assert response.status_code == 201
    assert response.json()["name"] == "Kirana Store"


def test_create_shop_sans_coordonnees(client):
    response = client.post("/api/v1/shops", json={"name": "Kirana Store"})
    assert response.status_code == 422


def test_list_shops_non_assignees(client):
    with patch("app.routers.shops.shop_service.get_shops") as mock:
        mock.return_value = [make_shop_response()]
        response = client.get("/api/v1/shops?unassigned=true")

    assert response.status_code == 200
    mock.assert_called_once()
    assert mock.call_args.kwargs["unassigned"] is True


def test_get_shop_introuvable(client):
    with patch("app.routers.shops.shop_service.get_shop") as mock:
        mock.return_value = None
        response = client.get(f"/api/v1/shops/{uuid.uuid4()}")

    assert response.status_code == 404


def test_routes_statiques_avant_shop_id(client):
    """/visit-counts ne doit pas être capturé par /{shop_id}."""
    with patch("app.routers.shops.shop_service.get_visit_counts") as mock:
        mock.return_value = VisitCounts(scope="global", visited=3, not_visited=7, total=10)
        response = client.get("/api/v1/shops/visit-counts")

    assert response.status_code == 200
    assert response.json()["total"] == 10


def test_visit_counts_manager_403(client):
    with patch("app.routers.shops.shop_service.get_visit_counts") as mock:
        mock.side_effect = RoleNotAllowedError("Rôle manager non pris en charge pour les statistiques de visite.")
        response = client.get(f"/api/v1/shops/visit-counts?user_id={uuid.uuid4()}")

    assert response.status_code == 403


def test_update_shop_role_refuse(client):
    with patch("app.routers.shops.shop_service.update_shop") as mock:
        mock.side_effect = RoleNotAllowedError("Vous n'êtes pas autorisé à modifier les boutiques.")
        response = client.put(
            f"/api/v1/shops/{uuid.uuid4()}",
            json={"user_id": str(uuid.uuid4()), "name": "Nouveau nom"},
        )

    assert response.status_code == 403


def test_update_shop_nom_null_422(client):
    """{"name": null} est refusé à la validation, sans appel au service."""
    with patch("app.routers.shops.shop_service.update_shop") as mock:
        response = client.put(
            f"/api/v1/shops/{uuid.uuid4()}",
            json={"user_id": str(uuid.uuid4()), "name": None},
        )

    assert response.status_code == 422
    mock.assert_not_called()


def test_assign_shops_succes(client):
    user_id = uuid.uuid4()
    with patch("app.routers.shops.shop_service.assign_shops") as mock:
        mock.return_value = ShopAssignResult(role="qc", user_id=user_id, modified_count=2)
        response = client.post(
            "/api/v1/shops/assign",
            json={"user_id": str(user_id), "role": "qc", "shop_ids": [str(uuid.uuid4()), str(uuid.uuid4())]},
        )

    assert response.status_code == 200
    assert response.json()["modified_count"] == 2


def test_assign_shops_conflit_409(client):
    taken = uuid.uuid4()
    with patch("app.routers.shops.shop_service.assign_shops") as mock:
        mock.side_effect = AssignmentConflictError("Déjà assignées.", shop_ids=[taken])
        response = client.post(
            "/api/v1/shops/assign",
            json={"user_id": str(uuid.uuid4()), "role": "auditor", "shop_ids": [str(taken)]},
        )

    assert response.status_code == 409
    assert response.json()["detail"]["shop_ids"] == [str(taken)]


def test_assign_shops_role_invalide(client):
    response = client.post(
        "/api/v1/shops/assign",
        json={"user_id": str(uuid.uuid4()), "role": "admin", "shop_ids": [str(uuid.uuid4())]},
    )
    assert response.status_code == 422


def test_reset_visits(client):
    with patch("app.routers.shops.visit_service.reset_all_visits") as mock:
        mock.return_value = ResetVisitsResult(modified_count=42, deleted_attempts=57)
        response = client.post("/api/v1/shops/reset-visits")

    assert response.status_code == 200
    assert response.json() == {"modified_count": 42, "deleted_attempts": 57}


def test_shops_by_visit_status(client):
    with patch("app.routers.shops.shop_service.get_shops_by_visit_status") as mock:
        mock.return_value = [make_shop_response(visit=True)]
        response = client.get("/api/v1/shops/by-visit-status?visited=true")

    assert response.status_code == 200
    mock.assert_called_once()
    assert mock.call_args[0][1] is True


# ============================================================
# /api/v1/users
# ============================================================

def test_create_user_succes(client):
    user_id = uuid.uuid4()
    with patch("app.routers.users.user_service.create_user") as mock:
        mock.return_value = UserResponse(
            id=user_id, username="ravi", name="Ravi Kumar", email=None, role="auditor",
            created_at=datetime.now(),
        )
        response = client.post("/api/v1/users", json={"username": "ravi", "role": "auditor"})

    assert response.status_code == 201
    assert response.json()["role"] == "auditor"


def test_create_user_doublon(client):
    with patch("app.routers.users.user_service.create_user") as mock:
        mock.side_effect = ValueError("Le nom d'utilisateur 'ravi' est déjà utilisé.")
        response = client.post("/api/v1/users", json={"username": "ravi", "role": "auditor"})

    assert response.status_code == 400


def test_user_shops_role_admin_403(client):
    with patch("app.routers.users.shop_service.get_shops_for_user") as mock:
        mock.side_effect = RoleNotAllowedError("Le rôle admin n'a pas de boutiques assignées.")
        response = client.get(f"/api/v1/users/{uuid.uuid4()}/shops")

    assert response.status_code == 403
