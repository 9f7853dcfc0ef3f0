"""
Schémas Pydantic pour la détection produit sur les photos de rayon.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class DetectionMethod(str, Enum):
    LOGO = "logo"
    TEXT = "text"
    OBJECT = "object"
    NONE = "none"


class Annotation(BaseModel):
    """Un logo, un label ou un objet reconnu par le service d'image."""
    description: str
    score: float = 0.0
    bounding_poly: Optional[Dict[str, Any]] = None


class VisionAnalysis(BaseModel):
    """Réponse normalisée du service de reconnaissance d'image."""
    labels: List[Annotation] = []
    logos: List[Annotation] = []
    objects: List[Annotation] = []
    extracted_text: str = ""


class DetectionResult(BaseModel):
    product_detected: bool = False
    count: int = Field(default=0, ge=0)
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    method: DetectionMethod = DetectionMethod.NONE

    # Preuves brutes conservées pour l'audit
    logo_detections: List[Annotation] = []
    extracted_text: str = ""
    detected_objects: List[Annotation] = []
    detected_labels: List[Annotation] = []

    processed_at: datetime
    error: Optional[str] = None  # Renseigné si le service d'image a échoué
