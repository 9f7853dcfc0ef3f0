"""
Schémas Pydantic pour la validation GPS des visites.
Les résultats sont stockés tels quels (JSON) sur le passage de visite.
"""

import math
from datetime import datetime
from enum import Enum
from typing import Dict, Optional

from pydantic import BaseModel, field_validator


class CheckpointKind(str, Enum):
    START_AUDIT = "start_audit"
    PHOTO_CLICK = "photo_click"
    PROCEED_CLICK = "proceed_click"


class GPSStatus(str, Enum):
    VALID = "valid"
    INVALID = "invalid"
    PARTIAL = "partial"
    NO_DATA = "no_data"


class Coordinate(BaseModel):
    """Couple latitude / longitude en degrés décimaux, toujours complet et fini."""
    latitude: float
    longitude: float

    @field_validator("latitude", "longitude")
    @classmethod
    def must_be_finite(cls, v: float) -> float:
        if not math.isfinite(v):
            raise ValueError("Les coordonnées doivent être des nombres finis.")
        return v


class ShopReference(BaseModel):
    """Position de référence d'une boutique et rayon toléré autour d'elle."""
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    radius_threshold_meters: float = 30.0

    @property
    def coordinate(self) -> Optional[Coordinate]:
        if self.latitude is None or self.longitude is None:
            return None
        if not (math.isfinite(self.latitude) and math.isfinite(self.longitude)):
            return None
        return Coordinate(latitude=self.latitude, longitude=self.longitude)


class CheckpointValidation(BaseModel):
    """distance=None : checkpoint non capturé (différent de « hors rayon »)."""
    distance: Optional[float] = None
    valid: bool = False


class GPSValidationResult(BaseModel):
    is_valid: bool
    status: GPSStatus
    distances: Dict[CheckpointKind, Optional[float]]
    validity: Dict[CheckpointKind, bool]
    radius_threshold_meters: float
    shop_coordinates: Optional[Coordinate] = None
    validated_at: datetime
    error: Optional[str] = None


class GPSValidationSummary(BaseModel):
    """Statistiques de validation GPS sur un ensemble de visites soumises."""
    total_visits: int
    visits_with_gps: int
    valid_visits: int
    invalid_visits: int
    partial_visits: int
    no_data_visits: int
    average_distance: float
    validation_rate: int  # % des visites avec GPS jugées valides
