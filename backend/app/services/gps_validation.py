"""
Validation GPS des visites de boutique.

Pour chaque checkpoint capturé pendant une visite (début d'audit, prise de photo,
validation), calcule la distance à la boutique et la compare au rayon toléré,
puis en déduit un verdict global pour repérer les visites faites à distance.

Module pur : aucun accès BDD ni réseau. La seule lecture d'horloge est
l'horodatage validated_at, injectable pour les tests.
"""

import math
from datetime import datetime, timezone
from typing import Dict, Iterable, Mapping, Optional

from app.config import settings
from app.schemas.gps import (
    CheckpointKind,
    CheckpointValidation,
    Coordinate,
    GPSStatus,
    GPSValidationResult,
    GPSValidationSummary,
    ShopReference,
)

EARTH_RADIUS_METERS = 6_371_000
# Nombre minimal de checkpoints valides pour accepter une visite partielle
PARTIAL_MIN_VALID = 2


def _round_half_up(value: float, digits: int = 2) -> float:
    factor = 10 ** digits
    return math.floor(value * factor + 0.5) / factor


def to_coordinate(latitude: Optional[float], longitude: Optional[float]) -> Optional[Coordinate]:
    """
    Construit une Coordinate si les deux valeurs sont présentes et finies.
    Sinon la position est considérée absente (jamais remplacée par zéro).
    """
    if latitude is None or longitude is None:
        return None
    try:
        lat, lon = float(latitude), float(longitude)
    except (TypeError, ValueError):
        return None
    if not (math.isfinite(lat) and math.isfinite(lon)):
        return None
    return Coordinate(latitude=lat, longitude=lon)


def distance_meters(a: Coordinate, b: Coordinate) -> float:
    """Distance orthodromique (Haversine, Terre sphérique) en mètres, arrondie au centimètre."""
    d_lat = math.radians(b.latitude - a.latitude)
    d_lon = math.radians(b.longitude - a.longitude)

    h = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(a.latitude)) * math.cos(math.radians(b.latitude))
        * math.sin(d_lon / 2) ** 2
    )
    c = 2 * math.atan2(math.sqrt(h), math.sqrt(1 - h))
    return _round_half_up(EARTH_RADIUS_METERS * c)


def validate_checkpoint(
    coordinate: Optional[Coordinate],
    shop_ref: ShopReference,
) -> CheckpointValidation:
    """
    Valide un checkpoint par rapport au rayon de la boutique (borne incluse).
    Checkpoint sans coordonnée → distance None, invalide (non capturé, pas une erreur).
    """
    shop_coordinate = shop_ref.coordinate
    if coordinate is None or shop_coordinate is None:
        return CheckpointValidation(distance=None, valid=False)

    distance = distance_meters(shop_coordinate, coordinate)
    return CheckpointValidation(
        distance=distance,
        valid=distance <= shop_ref.radius_threshold_meters,
    )


def _no_data_result(radius: float, validated_at: datetime, error: Optional[str]) -> GPSValidationResult:
    return GPSValidationResult(
        is_valid=False,
        status=GPSStatus.NO_DATA,
        distances={kind: None for kind in CheckpointKind},
        validity={kind: False for kind in CheckpointKind},
        radius_threshold_meters=radius,
        shop_coordinates=None,
        validated_at=validated_at,
        error=error,
    )


def validate_visit_gps(
    checkpoints: Mapping[CheckpointKind, Optional[Coordinate]],
    shop_ref: Optional[ShopReference],
    validated_at: Optional[datetime] = None,
) -> GPSValidationResult:
    """
    Calcule le verdict GPS d'une visite à partir de ses trois checkpoints.

    Règle de statut (dans cet ordre) :
    - aucun checkpoint avec coordonnées → no_data
    - tous les checkpoints mesurés sont dans le rayon → valid
    - aucun dans le rayon → invalid
    - sinon partial, jugé valide si au moins 2 checkpoints sont dans le rayon

    Ne lève jamais d'exception : l'absence de données est un statut à part entière.
    """
    validated_at = validated_at or datetime.now(timezone.utc)

    if shop_ref is None:
        return _no_data_result(
            settings.GPS_DEFAULT_RADIUS_METERS, validated_at, "Coordonnées de la boutique indisponibles."
        )
    if shop_ref.coordinate is None:
        return _no_data_result(
            shop_ref.radius_threshold_meters, validated_at, "Coordonnées de la boutique indisponibles."
        )

    results: Dict[CheckpointKind, CheckpointValidation] = {
        kind: validate_checkpoint(checkpoints.get(kind), shop_ref)
        for kind in CheckpointKind
    }

    total = sum(1 for r in results.values() if r.distance is not None)
    valid_count = sum(1 for r in results.values() if r.distance is not None and r.valid)

    if total == 0:
        status, is_valid = GPSStatus.NO_DATA, False
    elif valid_count == total:
        status, is_valid = GPSStatus.VALID, True
    elif valid_count == 0:
        status, is_valid = GPSStatus.INVALID, False
    else:
        status, is_valid = GPSStatus.PARTIAL, valid_count >= PARTIAL_MIN_VALID

    return GPSValidationResult(
        is_valid=is_valid,
        status=status,
        distances={kind: r.distance for kind, r in results.items()},
        validity={kind: r.valid for kind, r in results.items()},
        radius_threshold_meters=shop_ref.radius_threshold_meters,
        shop_coordinates=shop_ref.coordinate,
        validated_at=validated_at,
    )


def summarize_gps_validations(results: Iterable[Optional[GPSValidationResult]]) -> GPSValidationSummary:
    """
    Agrège les résultats GPS d'un ensemble de visites.

    Une visite sans résultat ou en no_data compte dans no_data_visits.
    average_distance est la moyenne, sur les visites avec GPS, de la distance
    moyenne de leurs checkpoints mesurés.
    """
    results = list(results)
    with_gps = [r for r in results if r is not None and r.status != GPSStatus.NO_DATA]

    per_visit_means = []
    for r in with_gps:
        distances = [d for d in r.distances.values() if d is not None]
        if distances:
            per_visit_means.append(sum(distances) / len(distances))

    average = sum(per_visit_means) / len(with_gps) if with_gps else 0.0
    valid_visits = sum(1 for r in with_gps if r.is_valid)

    return GPSValidationSummary(
        total_visits=len(results),
        visits_with_gps=len(with_gps),
        valid_visits=valid_visits,
        invalid_visits=sum(1 for r in with_gps if r.status == GPSStatus.INVALID),
        partial_visits=sum(1 for r in with_gps if r.status == GPSStatus.PARTIAL),
        no_data_visits=len(results) - len(with_gps),
        average_distance=_round_half_up(average),
        validation_rate=int(_round_half_up(valid_visits / len(with_gps) * 100, 0)) if with_gps else 0,
    )
