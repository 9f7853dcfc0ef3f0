"""
Tests unitaires pour le client du service de reconnaissance d'image.
Les appels HTTP passent par httpx.MockTransport : aucun accès réseau.
"""

import json

import httpx
import pytest

from app.services.detection_service import detect_product
from app.services.vision_client import VisionClient, VisionServiceError, parse_annotate_response

IMAGE = "https://storage.example.com/shelf.jpg"

ANNOTATE_PAYLOAD = {
    "responses": [
        {
            "localizedObjectAnnotations": [{"name": "Bag", "score": 0.81}],
            "labelAnnotations": [{"description": "Snack", "score": 0.9}],
            "logoAnnotations": [{"description": "Lay's", "score": 0.88}],
            "textAnnotations": [
                {"description": "LAYS\nMagic Masala"},
                {"description": "LAYS"},
            ],
        }
    ]
}


def make_client(handler, api_key="test-key") -> VisionClient:
    return VisionClient(
        api_url="https://vision.example.com/v1",
        api_key=api_key,
        timeout_seconds=2.0,
        transport=httpx.MockTransport(handler),
    )


# --- parse_annotate_response ---

def test_parse_reponse_complete():
    analysis = parse_annotate_response(ANNOTATE_PAYLOAD)

    assert analysis.objects[0].description == "Bag"
    assert analysis.objects[0].score == pytest.approx(0.81)
    assert analysis.labels[0].description == "Snack"
    assert analysis.logos[0].description == "Lay's"
    assert analysis.extracted_text == "LAYS\nMagic Masala"


def test_parse_reponse_sans_annotations():
    analysis = parse_annotate_response({"responses": [{}]})
    assert analysis.objects == []
    assert analysis.extracted_text == ""


def test_parse_reponse_vide():
    with pytest.raises(VisionServiceError, match="vide"):
        parse_annotate_response({"responses": []})


def test_parse_erreur_image():
    payload = {"responses": [{"error": {"code": 3, "message": "Bad image data."}}]}
    with pytest.raises(VisionServiceError, match="Bad image data"):
        parse_annotate_response(payload)


# --- VisionClient.analyze ---

def test_analyze_envoie_la_requete_attendue():
    captured = {}

    def handler(request: httpx.Request) -> httpx.Response:
        captured["url"] = request.url
        captured["body"] = json.loads(request.content)
        return httpx.Response(200, json=ANNOTATE_PAYLOAD)

    analysis = make_client(handler).analyze(IMAGE)

    assert captured["url"].path == "/v1/images:annotate"
    assert captured["url"].params["key"] == "test-key"
    req = captured["body"]["requests"][0]
    assert req["image"]["source"]["imageUri"] == IMAGE
    assert {f["type"] for f in req["features"]} == {
        "OBJECT_LOCALIZATION", "LABEL_DETECTION", "TEXT_DETECTION", "LOGO_DETECTION",
    }
    assert analysis.logos[0].description == "Lay's"


def test_analyze_sans_cle_api():
    def handler(request):  # pragma: no cover - jamais appelé
        raise AssertionError("aucun appel attendu")

    with pytest.raises(VisionServiceError, match="non configurée"):
        make_client(handler, api_key="").analyze(IMAGE)


def test_analyze_statut_http_erreur():
    def handler(request):
        return httpx.Response(503, json={"error": "unavailable"})

    with pytest.raises(VisionServiceError, match="HTTP"):
        make_client(handler).analyze(IMAGE)


def test_analyze_timeout():
    def handler(request):
        raise httpx.ReadTimeout("timeout", request=request)

    with pytest.raises(VisionServiceError, match="Délai"):
        make_client(handler).analyze(IMAGE)


def test_analyze_json_invalide():
    def handler(request):
        return httpx.Response(200, content=b"<html>oops</html>")

    with pytest.raises(VisionServiceError, match="JSON"):
        make_client(handler).analyze(IMAGE)


# --- Réponses mal formées ---

def test_parse_texte_null():
    analysis = parse_annotate_response({"responses": [{"textAnnotations": [{"description": None}]}]})
    assert analysis.extracted_text == ""


def test_parse_score_non_numerique():
    payload = {"responses": [{"logoAnnotations": [{"description": "Lays", "score": "high"}]}]}
    with pytest.raises(VisionServiceError, match="mal formée"):
        parse_annotate_response(payload)


def test_parse_entree_de_reponse_nulle():
    with pytest.raises(VisionServiceError, match="inattendu"):
        parse_annotate_response({"responses": [None]})


def test_parse_erreur_non_structuree():
    with pytest.raises(VisionServiceError, match="Erreur d'analyse"):
        parse_annotate_response({"responses": [{"error": "boom"}]})


@pytest.mark.parametrize("payload, degraded", [
    ({"responses": [{"textAnnotations": [{"description": None}]}]}, False),
    ({"responses": [{"logoAnnotations": [{"description": "Lays", "score": "high"}]}]}, True),
    ({"responses": [None]}, True),
    ({"responses": "oops"}, True),
    ([1, 2, 3], True),
])
def test_detect_product_reponse_mal_formee_ne_leve_pas(payload, degraded):
    """Quelle que soit la réponse du service, la détection retourne un résultat sans lever."""
    def handler(request):
        return httpx.Response(200, json=payload)

    result = detect_product(IMAGE, client=make_client(handler))

    assert result.product_detected is False
    assert result.count == 0
    assert (result.error is not None) is degraded
