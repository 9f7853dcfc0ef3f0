"""
Schémas Pydantic pour le cycle de vie d'une visite de boutique.
Début d'audit → prise de photo → soumission des preuves.
"""

import uuid
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, field_validator

from app.schemas.detection import DetectionResult
from app.schemas.gps import CheckpointKind, GPSValidationResult


class LocationPayload(BaseModel):
    """Position envoyée par l'app mobile. Coordonnée absente si l'un des deux champs manque."""
    latitude: Optional[float] = None
    longitude: Optional[float] = None


class StartAuditRequest(LocationPayload):
    pass


class PhotoClickRequest(LocationPayload):
    pass


class VisitSubmit(LocationPayload):
    """Soumission des preuves de visite (URLs des images déjà stockées)."""
    user_id: uuid.UUID
    shop_image: str
    shelf_image: str

    @field_validator("shop_image", "shelf_image")
    @classmethod
    def image_not_empty(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Les images de la boutique et du rayon sont obligatoires.")
        return v.strip()


class CheckpointResponse(BaseModel):
    kind: CheckpointKind
    latitude: Optional[float]
    longitude: Optional[float]
    captured_at: datetime


class VisitAttemptResponse(BaseModel):
    """Passage de visite avec ses checkpoints et, une fois soumis, ses résultats."""
    id: uuid.UUID
    shop_id: uuid.UUID
    status: str
    role: Optional[str] = None
    submitted_by: Optional[uuid.UUID] = None
    checkpoints: List[CheckpointResponse] = []
    shop_image: Optional[str] = None
    shelf_image: Optional[str] = None
    detection: Optional[DetectionResult] = None
    gps_validation: Optional[GPSValidationResult] = None
    created_at: Optional[datetime] = None
    submitted_at: Optional[datetime] = None


class ShopDetectionEntry(BaseModel):
    """Résultat de détection produit d'un passage soumis."""
    attempt_id: uuid.UUID
    role: Optional[str]
    submitted_at: Optional[datetime]
    shelf_image: Optional[str]
    detection: Optional[DetectionResult]


class ShopDetectionResults(BaseModel):
    shop_id: uuid.UUID
    total: int
    detected: int
    results: List[ShopDetectionEntry]
