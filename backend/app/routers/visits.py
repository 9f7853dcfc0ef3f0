"""
Router pour le cycle de vie des visites de boutique.
Début d'audit → prise de photo → soumission des preuves (détection produit + validation GPS).
"""

import uuid
from typing import List

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from app.database import get_db
from app.exceptions import http_status_for
from app.schemas.gps import GPSValidationSummary
from app.schemas.visit import (
    PhotoClickRequest,
    ShopDetectionResults,
    StartAuditRequest,
    VisitAttemptResponse,
    VisitSubmit,
)
from app.services import visit_service

# /api/v1/shops/{shop_id}/visits/...
router = APIRouter(prefix="/api/v1/shops", tags=["Visites"])

# /api/v1/visits/... (statistiques globales)
visits_router = APIRouter(prefix="/api/v1/visits", tags=["Visites"])


@router.post(
    "/{shop_id}/visits/start",
    response_model=VisitAttemptResponse,
    status_code=201,
    summary="Démarrer un audit",
)
def start_audit(shop_id: uuid.UUID, data: StartAuditRequest, db: Session = Depends(get_db)):
    """
    Ouvre un passage de visite et enregistre la position de début d'audit.
    Si un passage est déjà en cours, il est réutilisé et son checkpoint écrasé.

    Le champ `id` de la réponse doit être renvoyé aux étapes suivantes.
    """
    try:
        return visit_service.start_audit(db, shop_id, data)
    except ValueError as e:
        raise HTTPException(status_code=http_status_for(e), detail=str(e))


@router.post(
    "/{shop_id}/visits/{attempt_id}/photo-click",
    response_model=VisitAttemptResponse,
    summary="Enregistrer la prise de photo",
)
def record_photo_click(
    shop_id: uuid.UUID,
    attempt_id: uuid.UUID,
    data: PhotoClickRequest,
    db: Session = Depends(get_db),
):
    """Enregistre la position au moment de la prise de photo. 409 si aucun audit n'est en cours."""
    try:
        return visit_service.record_photo_click(db, shop_id, attempt_id, data)
    except ValueError as e:
        raise HTTPException(status_code=http_status_for(e), detail=str(e))


@router.post(
    "/{shop_id}/visits/{attempt_id}/submit",
    response_model=VisitAttemptResponse,
    summary="Soumettre une visite",
)
def submit_visit(
    shop_id: uuid.UUID,
    attempt_id: uuid.UUID,
    data: VisitSubmit,
    db: Session = Depends(get_db),
):
    """
    Finalise la visite avec les URLs des photos de la boutique et du rayon.

    - 403 si la boutique n'est pas assignée à l'utilisateur pour son rôle
    - 409 si attempt_id n'est pas le passage en cours
    - La détection produit et la validation GPS sont calculées et stockées ;
      une indisponibilité du service d'image ne fait pas échouer la soumission
    """
    try:
        return visit_service.submit_visit(db, shop_id, attempt_id, data)
    except ValueError as e:
        raise HTTPException(status_code=http_status_for(e), detail=str(e))


@router.get(
    "/{shop_id}/visits",
    response_model=List[VisitAttemptResponse],
    summary="Historique des passages d'une boutique",
)
def list_attempts(shop_id: uuid.UUID, db: Session = Depends(get_db)):
    try:
        return visit_service.list_attempts(db, shop_id)
    except ValueError as e:
        raise HTTPException(status_code=http_status_for(e), detail=str(e))


@router.post(
    "/{shop_id}/visits/{attempt_id}/gps-validation",
    response_model=VisitAttemptResponse,
    summary="Recalculer la validation GPS d'un passage",
)
def revalidate_gps(shop_id: uuid.UUID, attempt_id: uuid.UUID, db: Session = Depends(get_db)):
    """
    Recalcule la validation GPS d'un passage soumis avec les coordonnées et le rayon
    actuels de la boutique. Retourne 400 si le passage n'est pas encore soumis.
    """
    try:
        return visit_service.revalidate_gps(db, shop_id, attempt_id)
    except ValueError as e:
        raise HTTPException(status_code=http_status_for(e), detail=str(e))


@router.get(
    "/{shop_id}/detections",
    response_model=ShopDetectionResults,
    summary="Résultats de détection produit d'une boutique",
)
def get_detection_results(shop_id: uuid.UUID, db: Session = Depends(get_db)):
    try:
        return visit_service.get_detection_results(db, shop_id)
    except ValueError as e:
        raise HTTPException(status_code=http_status_for(e), detail=str(e))


@visits_router.get(
    "/gps-summary",
    response_model=GPSValidationSummary,
    summary="Statistiques de validation GPS",
)
def get_gps_summary(db: Session = Depends(get_db)):
    """Agrège les verdicts GPS de tous les passages soumis."""
    return visit_service.get_gps_validation_summary(db)
