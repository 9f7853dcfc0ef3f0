"""
Client HTTP du service de reconnaissance d'image (Google Cloud Vision, API REST).

Un seul appel images:annotate par image, avec détection d'objets, de labels,
de texte (OCR) et de logos. Toute défaillance (réseau, timeout, statut non 2xx,
JSON invalide, erreur renvoyée pour l'image, clé absente) lève VisionServiceError :
c'est à l'appelant de décider comment dégrader.
"""

import logging
from typing import Any, Dict, List, Optional

import httpx

from app.config import settings
from app.schemas.detection import Annotation, VisionAnalysis

logger = logging.getLogger(__name__)

FEATURES = [
    {"type": "OBJECT_LOCALIZATION", "maxResults": 10},
    {"type": "LABEL_DETECTION", "maxResults": 20},
    {"type": "TEXT_DETECTION", "maxResults": 50},
    {"type": "LOGO_DETECTION", "maxResults": 10},
]


class VisionServiceError(Exception):
    """Le service de reconnaissance d'image n'a pas pu analyser l'image."""


def _annotations(items: List[Dict[str, Any]], name_key: str = "description") -> List[Annotation]:
    return [
        Annotation(
            description=str(item.get(name_key) or ""),
            score=float(item.get("score") or 0.0),
            bounding_poly=item.get("boundingPoly"),
        )
        for item in items
    ]


def parse_annotate_response(payload: Dict[str, Any]) -> VisionAnalysis:
    """
    Convertit la réponse brute images:annotate en VisionAnalysis.
    Toute réponse mal formée lève VisionServiceError.
    """
    if not isinstance(payload, dict):
        raise VisionServiceError("Format de réponse inattendu du service de reconnaissance.")
    responses = payload.get("responses") or []
    if not isinstance(responses, list) or not responses:
        raise VisionServiceError("Réponse vide du service de reconnaissance d'image.")

    result = responses[0]
    if not isinstance(result, dict):
        raise VisionServiceError("Format de réponse inattendu du service de reconnaissance.")
    error = result.get("error")
    if error:
        message = error.get("message") if isinstance(error, dict) else None
        raise VisionServiceError(message or "Erreur d'analyse de l'image.")

    try:
        texts = result.get("textAnnotations") or []
        return VisionAnalysis(
            objects=_annotations(result.get("localizedObjectAnnotations") or [], name_key="name"),
            labels=_annotations(result.get("labelAnnotations") or []),
            logos=_annotations(result.get("logoAnnotations") or []),
            # La première annotation texte contient le texte complet de l'image
            extracted_text=str(texts[0].get("description") or "") if texts else "",
        )
    except (ValueError, TypeError, AttributeError, KeyError, IndexError) as exc:
        # pydantic.ValidationError hérite de ValueError
        raise VisionServiceError(f"Réponse mal formée du service de reconnaissance : {exc}") from exc


class VisionClient:
    def __init__(
        self,
        api_url: str,
        api_key: str,
        timeout_seconds: float = 15.0,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.api_url = api_url.rstrip("/")
        self.api_key = api_key
        self.timeout_seconds = timeout_seconds
        self._transport = transport

    def analyze(self, image_ref: str) -> VisionAnalysis:
        """Analyse l'image désignée par son URL. Lève VisionServiceError en cas d'échec."""
        if not self.api_key:
            raise VisionServiceError("Clé API du service de reconnaissance d'image non configurée.")

        body = {
            "requests": [
                {"image": {"source": {"imageUri": image_ref}}, "features": FEATURES}
            ]
        }

        try:
            with httpx.Client(timeout=self.timeout_seconds, transport=self._transport) as client:
                resp = client.post(
                    f"{self.api_url}/images:annotate",
                    params={"key": self.api_key},
                    json=body,
                )
                resp.raise_for_status()
                payload = resp.json()
        except httpx.TimeoutException as exc:
            raise VisionServiceError(f"Délai dépassé lors de l'analyse de l'image : {exc}") from exc
        except httpx.HTTPError as exc:
            raise VisionServiceError(f"Erreur HTTP du service de reconnaissance : {exc}") from exc
        except ValueError as exc:
            raise VisionServiceError("Réponse JSON invalide du service de reconnaissance.") from exc

        analysis = parse_annotate_response(payload)
        logger.debug(
            "Analyse image %s : %d objets, %d labels, %d logos",
            image_ref, len(analysis.objects), len(analysis.labels), len(analysis.logos),
        )
        return analysis


def get_vision_client() -> VisionClient:
    """Construit le client à partir de la configuration courante."""
    return VisionClient(
        api_url=settings.VISION_API_URL,
        api_key=settings.VISION_API_KEY,
        timeout_seconds=settings.VISION_TIMEOUT_SECONDS,
    )
