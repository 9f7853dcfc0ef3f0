"""
Détection produit sur la photo de rayon d'une visite.

Transforme l'analyse brute du service de reconnaissance d'image en un
DetectionResult stocké sur le passage de visite :
- logo du produit reconnu → méthode logo, un produit par logo, confiance = score moyen
- sinon texte du produit lu par OCR → méthode text, comptage via les objets/labels
  de catégorie (au moins 1), confiance plancher TEXT_CONFIDENCE_FLOOR
- sinon → non détecté

Une défaillance du service n'est jamais propagée : le résultat « none » est
retourné avec le message d'erreur, et la soumission de visite se poursuit.
"""

import logging
import math
from datetime import datetime, timezone
from typing import List, Optional

from app.schemas.detection import Annotation, DetectionMethod, DetectionResult, VisionAnalysis
from app.services.vision_client import VisionClient, VisionServiceError, get_vision_client

logger = logging.getLogger(__name__)

# Mots-clés recherchés dans le texte OCR de la photo
PRODUCT_TEXT_KEYWORDS = [
    "lays", "lay's", "lays classic", "lays masala", "lays magic masala",
    "lays cream onion", "lays cheese herbs", "lays tomato tango", "lays macho chilli",
]

# Mots-clés recherchés dans la description des logos reconnus
PRODUCT_LOGO_KEYWORDS = PRODUCT_TEXT_KEYWORDS + [
    "lays chip", "lays chips", "lays potato chip", "lays potato chips",
    "lays crisp", "lays crisps", "lays snack", "lays snacks",
    "lays bag", "lays bags", "lays packet", "lays packets",
    "lay chip", "lay chips", "lais chip", "lais chips", "lais lays",
]

# Objets / labels génériques de la catégorie produit
CATEGORY_KEYWORDS = [
    "chip", "chips", "potato chip", "potato chips", "crisp", "crisps",
    "snack", "snacks", "bag", "packet",
]

TEXT_CONFIDENCE_FLOOR = 0.7
MAX_EXTRACTED_TEXT = 500
MAX_EVIDENCE_ITEMS = 10


def _contains_any(text: str, keywords: List[str]) -> bool:
    lowered = text.lower()
    return any(keyword in lowered for keyword in keywords)


def _mean_score(items: List[Annotation]) -> float:
    return sum(item.score for item in items) / len(items) if items else 0.0


def _round2(value: float) -> float:
    return math.floor(value * 100 + 0.5) / 100


def failed_detection(error: str) -> DetectionResult:
    """Résultat par défaut quand le service d'image est indisponible."""
    return DetectionResult(processed_at=datetime.now(timezone.utc), error=error)


def build_detection_result(analysis: VisionAnalysis) -> DetectionResult:
    """Applique les règles de détection produit à une analyse d'image."""
    text_found = _contains_any(analysis.extracted_text, PRODUCT_TEXT_KEYWORDS)
    logo_matches = [
        logo for logo in analysis.logos
        if _contains_any(logo.description, PRODUCT_LOGO_KEYWORDS)
    ]

    count = 0
    confidence = 0.0
    method = DetectionMethod.NONE

    if logo_matches:
        count = len(logo_matches)
        confidence = _mean_score(logo_matches)
        method = DetectionMethod.LOGO
    elif text_found:
        category_objects = [o for o in analysis.objects if _contains_any(o.description, CATEGORY_KEYWORDS)]
        category_labels = [lb for lb in analysis.labels if _contains_any(lb.description, CATEGORY_KEYWORDS)]
        count = max(len(category_objects), len(category_labels), 1)
        confidence = max(
            _mean_score(category_objects),
            _mean_score(category_labels),
            TEXT_CONFIDENCE_FLOOR,
        )
        method = DetectionMethod.TEXT

    return DetectionResult(
        product_detected=text_found or bool(logo_matches),
        count=count,
        confidence=min(_round2(confidence), 1.0),
        method=method,
        logo_detections=logo_matches,
        extracted_text=analysis.extracted_text[:MAX_EXTRACTED_TEXT],
        detected_objects=[
            Annotation(description=o.description, score=o.score)
            for o in analysis.objects[:MAX_EVIDENCE_ITEMS]
        ],
        detected_labels=[
            Annotation(description=lb.description, score=lb.score)
            for lb in analysis.labels[:MAX_EVIDENCE_ITEMS]
        ],
        processed_at=datetime.now(timezone.utc),
    )


def detect_product(image_ref: str, client: Optional[VisionClient] = None) -> DetectionResult:
    """
    Analyse la photo de rayon et retourne le résultat de détection.
    Ne lève jamais d'exception liée au service d'image.
    """
    client = client or get_vision_client()
    try:
        analysis = client.analyze(image_ref)
        result = build_detection_result(analysis)
    except VisionServiceError as exc:
        logger.warning("Détection produit dégradée pour %s : %s", image_ref, exc)
        return failed_detection(str(exc))
    except (ValueError, TypeError, AttributeError) as exc:
        logger.error("Détection produit en échec pour %s : %s", image_ref, exc, exc_info=True)
        return failed_detection(f"Analyse de l'image impossible : {exc}")

    logger.info(
        "Détection produit %s : détecté=%s, nombre=%d, confiance=%.2f, méthode=%s",
        image_ref, result.product_detected, result.count, result.confidence, result.method.value,
    )
    return result
