"""
Router pour les boutiques.
CRUD, assignation en masse par rôle, signalement terrain et statistiques de visite.
"""

import uuid
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from app.database import get_db
from app.exceptions import AssignmentConflictError, http_status_for
from app.schemas.shop import (
    ResetVisitsResult,
    ShopAssign,
    ShopAssignResult,
    ShopCreate,
    ShopFoundUpdate,
    ShopResponse,
    ShopUpdate,
    VisitCounts,
)
from app.services import shop_service, visit_service

router = APIRouter(prefix="/api/v1/shops", tags=["Boutiques"])


@router.post("", response_model=ShopResponse, status_code=201, summary="Créer une boutique")
def create_shop(data: ShopCreate, db: Session = Depends(get_db)):
    """Crée une boutique. Si radius_threshold_meters est fourni, il remplace le rayon par défaut."""
    return shop_service.create_shop(db, data)


@router.get("", response_model=List[ShopResponse], summary="Lister les boutiques")
def list_shops(unassigned: bool = False, db: Session = Depends(get_db)):
    """Retourne les boutiques triées par nom. `unassigned=true` → uniquement celles sans auditeur."""
    return shop_service.get_shops(db, unassigned=unassigned)


# Routes statiques déclarées avant /{shop_id}

@router.get(
    "/by-visit-status",
    response_model=List[ShopResponse],
    summary="Boutiques assignées, filtrées par statut de visite",
)
def list_shops_by_visit_status(visited: bool, db: Session = Depends(get_db)):
    return shop_service.get_shops_by_visit_status(db, visited)


@router.get("/visited", response_model=List[ShopResponse], summary="Boutiques visitées par un auditeur")
def list_visited_shops(auditor_id: uuid.UUID, db: Session = Depends(get_db)):
    return shop_service.get_visited_shops(db, auditor_id)


@router.get("/visit-counts", response_model=VisitCounts, summary="Compteurs de visites")
def get_visit_counts(user_id: Optional[uuid.UUID] = None, db: Session = Depends(get_db)):
    """
    Compteurs visitées / non visitées.
    Sans user_id : global. Avec user_id : boutiques assignées à l'utilisateur selon son rôle.
    Retourne 403 pour un rôle qui ne visite pas (ex. manager).
    """
    try:
        return shop_service.get_visit_counts(db, user_id)
    except ValueError as e:
        raise HTTPException(status_code=http_status_for(e), detail=str(e))


@router.post("/assign", response_model=ShopAssignResult, summary="Assigner des boutiques")
def assign_shops(data: ShopAssign, db: Session = Depends(get_db)):
    """
    Assigne un lot de boutiques à un utilisateur pour le rôle indiqué.

    - 400 si l'utilisateur n'existe pas ou n'a pas ce rôle
    - 409 si certaines boutiques ont déjà un assigné pour ce rôle
      (la liste est renvoyée dans `detail.shop_ids`, aucune assignation n'est faite)
    """
    try:
        return shop_service.assign_shops(db, data)
    except AssignmentConflictError as e:
        raise HTTPException(
            status_code=409,
            detail={"message": str(e), "shop_ids": [str(shop_id) for shop_id in e.shop_ids]},
        )
    except ValueError as e:
        raise HTTPException(status_code=http_status_for(e), detail=str(e))


@router.post("/reset-visits", response_model=ResetVisitsResult, summary="Remettre toutes les visites à zéro")
def reset_visits(db: Session = Depends(get_db)):
    """
    Opération d'administration : toutes les boutiques repassent « non visitées »
    pour tous les rôles et tous les passages sont supprimés.
    """
    return visit_service.reset_all_visits(db)


@router.get("/{shop_id}", response_model=ShopResponse, summary="Détail d'une boutique")
def get_shop(shop_id: uuid.UUID, db: Session = Depends(get_db)):
    shop = shop_service.get_shop(db, shop_id)
    if shop is None:
        raise HTTPException(status_code=404, detail="Boutique introuvable.")
    return shop


@router.put("/{shop_id}", response_model=ShopResponse, summary="Modifier une boutique")
def update_shop(shop_id: uuid.UUID, data: ShopUpdate, db: Session = Depends(get_db)):
    """
    Met à jour les champs fournis d'une boutique.
    Réservé aux contrôleurs qualité et commerciaux (403 sinon).
    """
    try:
        return shop_service.update_shop(db, shop_id, data)
    except ValueError as e:
        raise HTTPException(status_code=http_status_for(e), detail=str(e))


@router.post("/{shop_id}/found", response_model=ShopResponse, summary="Signaler une boutique trouvée ou introuvable")
def mark_shop_found(shop_id: uuid.UUID, data: ShopFoundUpdate, db: Session = Depends(get_db)):
    try:
        return shop_service.mark_shop_found(db, shop_id, data)
    except ValueError as e:
        raise HTTPException(status_code=http_status_for(e), detail=str(e))
