"""
Service métier du cycle de vie d'une visite de boutique.

Un passage (VisitAttempt) suit les états STARTED → CAPTURED → SUBMITTED :
1. start_audit        : ouvre un passage (ou réutilise celui en cours) et enregistre
                        le checkpoint « début d'audit ». Idempotent pour les clients
                        mobiles qui renvoient la requête.
2. record_photo_click : enregistre le checkpoint « prise de photo » du passage en cours.
3. submit_visit       : vérifie l'assignation du rôle, enregistre le checkpoint
                        « validation », les images, la détection produit et la
                        validation GPS, puis marque la boutique visitée pour ce rôle.

L'identifiant du passage renvoyé par start_audit sert de référence explicite aux
appels suivants. Le verdict GPS est informatif : il ne bloque pas la soumission.
"""

import logging
import uuid
from datetime import datetime, timezone
from typing import Dict, List, Optional

from sqlalchemy import delete, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.config import settings
from app.database import commit_or_rollback
from app.exceptions import NoOpenAttemptError, NotAssignedError, NotFoundError, PersistenceError
from app.models.shop import Shop
from app.models.user import User
from app.models.visit import VisitAttempt
from app.roles import ROLE_FIELDS, parse_role
from app.schemas.detection import DetectionResult
from app.schemas.gps import (
    CheckpointKind,
    Coordinate,
    GPSValidationResult,
    GPSValidationSummary,
    ShopReference,
)
from app.schemas.shop import ResetVisitsResult
from app.schemas.visit import (
    CheckpointResponse,
    LocationPayload,
    ShopDetectionEntry,
    ShopDetectionResults,
    VisitAttemptResponse,
    VisitSubmit,
)
from app.services.detection_service import detect_product
from app.services.gps_validation import summarize_gps_validations, to_coordinate, validate_visit_gps

logger = logging.getLogger(__name__)

STARTED = "STARTED"
CAPTURED = "CAPTURED"
SUBMITTED = "SUBMITTED"


def _now() -> datetime:
    return datetime.now(timezone.utc)


# ----------------------------------------------------------------
# Helpers
# ----------------------------------------------------------------

def shop_reference(shop: Shop) -> ShopReference:
    """Position et rayon de validation d'une boutique (rayon propre si radius_override)."""
    radius = settings.GPS_DEFAULT_RADIUS_METERS
    if shop.radius_override and shop.radius_threshold_meters:
        radius = shop.radius_threshold_meters
    return ShopReference(
        latitude=shop.latitude,
        longitude=shop.longitude,
        radius_threshold_meters=radius,
    )


def attempt_checkpoints(attempt: VisitAttempt) -> Dict[CheckpointKind, Optional[Coordinate]]:
    return {
        kind: to_coordinate(
            getattr(attempt, f"{kind.value}_latitude"),
            getattr(attempt, f"{kind.value}_longitude"),
        )
        for kind in CheckpointKind
    }


def _set_checkpoint(
    attempt: VisitAttempt,
    kind: CheckpointKind,
    location: LocationPayload,
    captured_at: datetime,
) -> None:
    """Écrase le checkpoint du passage. Coordonnée incomplète → enregistrée comme absente."""
    coordinate = to_coordinate(location.latitude, location.longitude)
    setattr(attempt, f"{kind.value}_latitude", coordinate.latitude if coordinate else None)
    setattr(attempt, f"{kind.value}_longitude", coordinate.longitude if coordinate else None)
    setattr(attempt, f"{kind.value}_at", captured_at)


def to_attempt_response(attempt: VisitAttempt) -> VisitAttemptResponse:
    checkpoints = []
    for kind in CheckpointKind:
        captured_at = getattr(attempt, f"{kind.value}_at")
        if captured_at is None:
            continue
        checkpoints.append(CheckpointResponse(
            kind=kind,
            latitude=getattr(attempt, f"{kind.value}_latitude"),
            longitude=getattr(attempt, f"{kind.value}_longitude"),
            captured_at=captured_at,
        ))

    return VisitAttemptResponse(
        id=attempt.id,
        shop_id=attempt.shop_id,
        status=attempt.status,
        role=attempt.role,
        submitted_by=attempt.submitted_by,
        checkpoints=checkpoints,
        shop_image=attempt.shop_image,
        shelf_image=attempt.shelf_image,
        detection=DetectionResult.model_validate(attempt.detection) if attempt.detection else None,
        gps_validation=(
            GPSValidationResult.model_validate(attempt.gps_validation)
            if attempt.gps_validation else None
        ),
        created_at=attempt.created_at,
        submitted_at=attempt.submitted_at,
    )


def _get_shop(db: Session, shop_id: uuid.UUID, lock: bool = False) -> Shop:
    """lock=True : SELECT ... FOR UPDATE, sérialise les étapes du cycle de vie d'une même boutique."""
    shop = db.get(Shop, shop_id, with_for_update=lock)
    if shop is None:
        raise NotFoundError(f"Boutique {shop_id} introuvable.")
    return shop


def _find_open_attempt(db: Session, shop_id: uuid.UUID) -> Optional[VisitAttempt]:
    """Passage non soumis le plus récent de la boutique (au plus un en pratique)."""
    return db.execute(
        select(VisitAttempt)
        .where(
            VisitAttempt.shop_id == shop_id,
            VisitAttempt.status != SUBMITTED,
        )
        .order_by(VisitAttempt.created_at.desc())
    ).scalars().first()


def _require_open_attempt(db: Session, shop_id: uuid.UUID, attempt_id: uuid.UUID) -> VisitAttempt:
    attempt = _find_open_attempt(db, shop_id)
    if attempt is None:
        raise NoOpenAttemptError("Aucun audit démarré pour cette boutique.")
    if attempt.id != attempt_id:
        raise NoOpenAttemptError(f"Le passage {attempt_id} n'est pas le passage en cours de la boutique.")
    return attempt


# ----------------------------------------------------------------
# Cycle de vie
# ----------------------------------------------------------------

def start_audit(db: Session, shop_id: uuid.UUID, location: LocationPayload) -> VisitAttemptResponse:
    """
    Démarre un audit : ouvre un nouveau passage si aucun n'est en cours,
    sinon écrase le checkpoint « début d'audit » du passage en cours.
    La ligne de la boutique est verrouillée (FOR UPDATE) : deux débuts d'audit
    simultanés ne peuvent pas ouvrir deux passages.

    Lève NotFoundError si la boutique est introuvable.
    """
    _get_shop(db, shop_id, lock=True)

    now = _now()
    attempt = _find_open_attempt(db, shop_id)
    reused = attempt is not None
    if attempt is None:
        attempt = VisitAttempt(id=uuid.uuid4(), shop_id=shop_id, status=STARTED, created_at=now)
        db.add(attempt)

    _set_checkpoint(attempt, CheckpointKind.START_AUDIT, location, now)
    commit_or_rollback(db)
    db.refresh(attempt)

    logger.info(
        "Début d'audit boutique %s, passage %s (%s)",
        shop_id, attempt.id, "repris" if reused else "nouveau",
    )
    return to_attempt_response(attempt)


def record_photo_click(
    db: Session,
    shop_id: uuid.UUID,
    attempt_id: uuid.UUID,
    location: LocationPayload,
) -> VisitAttemptResponse:
    """
    Enregistre la position au moment de la prise de photo sur le passage en cours.

    Lève NotFoundError si la boutique est introuvable, NoOpenAttemptError si
    attempt_id ne désigne pas le passage en cours.
    """
    _get_shop(db, shop_id, lock=True)
    attempt = _require_open_attempt(db, shop_id, attempt_id)

    _set_checkpoint(attempt, CheckpointKind.PHOTO_CLICK, location, _now())
    attempt.status = CAPTURED
    commit_or_rollback(db)
    db.refresh(attempt)

    logger.info("Prise de photo enregistrée : boutique %s, passage %s", shop_id, attempt_id)
    return to_attempt_response(attempt)


def submit_visit(
    db: Session,
    shop_id: uuid.UUID,
    attempt_id: uuid.UUID,
    data: VisitSubmit,
) -> VisitAttemptResponse:
    """
    Finalise le passage en cours avec les preuves de visite.

    Vérifications (aucune modification si l'une échoue) :
    1. La boutique et l'utilisateur existent (NotFoundError)
    2. Le rôle de l'utilisateur est auditor, qc ou salesperson et la boutique
       lui est assignée pour ce rôle (NotAssignedError)
    3. attempt_id est le passage en cours (NoOpenAttemptError)

    La détection produit ne fait jamais échouer la soumission ; le verdict GPS
    est stocké mais ne conditionne pas la finalisation.
    """
    shop = _get_shop(db, shop_id, lock=True)

    user = db.get(User, data.user_id)
    if user is None:
        raise NotFoundError(f"Utilisateur {data.user_id} introuvable.")

    role = parse_role(user.role)
    if role is None or not ROLE_FIELDS[role].can_visit:
        raise NotAssignedError(f"Le rôle {user.role} ne peut pas soumettre de visite.")
    fields = ROLE_FIELDS[role]
    if getattr(shop, fields.assignment) != data.user_id:
        raise NotAssignedError("Cette boutique ne vous est pas assignée.")

    attempt = _require_open_attempt(db, shop_id, attempt_id)

    # Appel externe avant toute mutation : en cas d'échec de commit, rien n'est écrit
    detection = detect_product(data.shelf_image)

    now = _now()
    _set_checkpoint(attempt, CheckpointKind.PROCEED_CLICK, data, now)
    attempt.shop_image = data.shop_image
    attempt.shelf_image = data.shelf_image
    attempt.detection = detection.model_dump(mode="json")

    gps = validate_visit_gps(attempt_checkpoints(attempt), shop_reference(shop), validated_at=now)
    attempt.gps_validation = gps.model_dump(mode="json")

    attempt.status = SUBMITTED
    attempt.role = role.value
    attempt.submitted_by = data.user_id
    attempt.submitted_at = now

    setattr(shop, fields.visited, True)
    setattr(shop, fields.visited_by, data.user_id)
    setattr(shop, fields.visited_at, now)

    commit_or_rollback(db)
    db.refresh(attempt)

    logger.info(
        "Visite %s soumise : boutique %s, passage %s, GPS=%s, produit détecté=%s",
        role.value, shop_id, attempt_id, gps.status.value, detection.product_detected,
    )
    return to_attempt_response(attempt)


def reset_all_visits(db: Session) -> ResetVisitsResult:
    """
    Opération d'administration : remet toutes les boutiques à l'état « non visitée »
    pour tous les rôles et supprime tous les passages.
    """
    values = {"version_id": Shop.version_id + 1}
    for fields in ROLE_FIELDS.values():
        if fields.can_visit:
            values[fields.visited] = False
            values[fields.visited_by] = None
            values[fields.visited_at] = None

    try:
        deleted = db.execute(
            delete(VisitAttempt).execution_options(synchronize_session=False)
        ).rowcount
        modified = db.execute(
            update(Shop).values(**values).execution_options(synchronize_session=False)
        ).rowcount
    except SQLAlchemyError as exc:
        db.rollback()
        logger.error("Échec de la remise à zéro des visites : %s", exc)
        raise PersistenceError("Échec de la remise à zéro des visites.") from exc
    commit_or_rollback(db)

    logger.info("Remise à zéro des visites : %d boutiques, %d passages supprimés", modified, deleted)
    return ResetVisitsResult(modified_count=modified, deleted_attempts=deleted)


# ----------------------------------------------------------------
# Consultation
# ----------------------------------------------------------------

def list_attempts(db: Session, shop_id: uuid.UUID) -> List[VisitAttemptResponse]:
    """Historique des passages d'une boutique, du plus ancien au plus récent."""
    _get_shop(db, shop_id)
    attempts = db.execute(
        select(VisitAttempt)
        .where(VisitAttempt.shop_id == shop_id)
        .order_by(VisitAttempt.created_at)
    ).scalars().all()
    return [to_attempt_response(a) for a in attempts]


def revalidate_gps(db: Session, shop_id: uuid.UUID, attempt_id: uuid.UUID) -> VisitAttemptResponse:
    """
    Recalcule la validation GPS d'un passage soumis avec la référence actuelle
    de la boutique (ex. après correction de ses coordonnées) et remplace l'ancien résultat.
    """
    shop = _get_shop(db, shop_id)
    attempt = db.get(VisitAttempt, attempt_id)
    if attempt is None or attempt.shop_id != shop_id:
        raise NotFoundError(f"Passage {attempt_id} introuvable pour cette boutique.")
    if attempt.status != SUBMITTED:
        raise ValueError("Seul un passage soumis peut être revalidé.")

    gps = validate_visit_gps(attempt_checkpoints(attempt), shop_reference(shop))
    attempt.gps_validation = gps.model_dump(mode="json")
    commit_or_rollback(db)
    db.refresh(attempt)

    logger.info("Validation GPS recalculée, passage %s : %s", attempt_id, gps.status.value)
    return to_attempt_response(attempt)


def get_detection_results(db: Session, shop_id: uuid.UUID) -> ShopDetectionResults:
    """Résultats de détection produit des passages soumis d'une boutique."""
    _get_shop(db, shop_id)
    attempts = db.execute(
        select(VisitAttempt)
        .where(
            VisitAttempt.shop_id == shop_id,
            VisitAttempt.status == SUBMITTED,
        )
        .order_by(VisitAttempt.submitted_at)
    ).scalars().all()

    results = [
        ShopDetectionEntry(
            attempt_id=a.id,
            role=a.role,
            submitted_at=a.submitted_at,
            shelf_image=a.shelf_image,
            detection=DetectionResult.model_validate(a.detection) if a.detection else None,
        )
        for a in attempts
    ]
    return ShopDetectionResults(
        shop_id=shop_id,
        total=len(results),
        detected=sum(1 for r in results if r.detection and r.detection.product_detected),
        results=results,
    )


def get_gps_validation_summary(db: Session) -> GPSValidationSummary:
    """Statistiques de validation GPS sur l'ensemble des passages soumis."""
    attempts = db.execute(
        select(VisitAttempt).where(VisitAttempt.status == SUBMITTED)
    ).scalars().all()
    return summarize_gps_validations(
        GPSValidationResult.model_validate(a.gps_validation) if a.gps_validation else None
        for a in attempts
    )
