"""
Schémas Pydantic pour les boutiques, leurs assignations et les statistiques de visite.
"""

import uuid
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, field_validator

from app.roles import Role


class ShopCreate(BaseModel):
    name: str
    address: Optional[str] = None
    latitude: float
    longitude: float
    radius_threshold_meters: Optional[float] = None  # si fourni, remplace le rayon par défaut

    @field_validator("name")
    @classmethod
    def name_not_empty(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Le nom de la boutique ne peut pas être vide.")
        return v.strip()

    @field_validator("radius_threshold_meters")
    @classmethod
    def radius_positive(cls, v: Optional[float]) -> Optional[float]:
        if v is not None and v <= 0:
            raise ValueError("Le rayon de validation doit être strictement positif.")
        return v


class ShopUpdate(BaseModel):
    """Seuls les champs fournis sont modifiés. user_id identifie l'auteur (QC ou commercial)."""
    user_id: uuid.UUID
    name: Optional[str] = None
    address: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    radius_override: Optional[bool] = None
    radius_threshold_meters: Optional[float] = None

    @field_validator("name")
    @classmethod
    def name_not_empty(cls, v: Optional[str]) -> str:
        # Appelé seulement si le champ est fourni : null explicite refusé
        if v is None or not v.strip():
            raise ValueError("Le nom de la boutique ne peut pas être vide.")
        return v.strip()

    @field_validator("radius_threshold_meters")
    @classmethod
    def radius_positive(cls, v: Optional[float]) -> Optional[float]:
        if v is not None and v <= 0:
            raise ValueError("Le rayon de validation doit être strictement positif.")
        return v


class ShopResponse(BaseModel):
    id: uuid.UUID
    name: str
    address: Optional[str]
    latitude: Optional[float]
    longitude: Optional[float]
    radius_override: Optional[bool] = None
    radius_threshold_meters: Optional[float] = None

    assigned_to: Optional[uuid.UUID] = None
    assigned_qc: Optional[uuid.UUID] = None
    assigned_salesperson: Optional[uuid.UUID] = None
    assigned_manager_id: Optional[uuid.UUID] = None

    visit: Optional[bool] = None
    visited_by: Optional[uuid.UUID] = None
    visited_at: Optional[datetime] = None
    visit_by_qc: Optional[bool] = None
    visited_by_qc_id: Optional[uuid.UUID] = None
    visited_at_by_qc: Optional[datetime] = None
    visit_by_salesperson: Optional[bool] = None
    visited_by_salesperson_id: Optional[uuid.UUID] = None
    visited_at_by_salesperson: Optional[datetime] = None

    shop_found: Optional[bool] = None
    shop_found_at: Optional[datetime] = None

    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class ShopAssign(BaseModel):
    """Assignation en masse de boutiques à un utilisateur pour un rôle donné."""
    user_id: uuid.UUID
    role: Role
    shop_ids: List[uuid.UUID]

    @field_validator("shop_ids")
    @classmethod
    def at_least_one_shop(cls, v: List[uuid.UUID]) -> List[uuid.UUID]:
        if not v:
            raise ValueError("Au moins une boutique doit être sélectionnée.")
        return v


class ShopAssignResult(BaseModel):
    role: Role
    user_id: uuid.UUID
    modified_count: int


class ShopFoundUpdate(BaseModel):
    """Signalement terrain : boutique trouvée (True) ou introuvable (False)."""
    status: bool
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    user_id: Optional[uuid.UUID] = None


class VisitCounts(BaseModel):
    scope: str  # global, auditor, qc, salesperson
    visited: int
    not_visited: int
    total: int


class ResetVisitsResult(BaseModel):
    modified_count: int
    deleted_attempts: int
