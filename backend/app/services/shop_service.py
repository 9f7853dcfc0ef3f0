"""
Service métier pour les boutiques : création, consultation, assignation par rôle,
signalement terrain et statistiques de visite.
"""

import uuid
import logging
from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from app.database import commit_or_rollback
from app.exceptions import AssignmentConflictError, NotFoundError, RoleNotAllowedError
from app.models.shop import Shop
from app.models.user import User
from app.roles import ROLE_FIELDS, Role, fields_for, parse_role
from app.schemas.shop import (
    ShopAssign,
    ShopAssignResult,
    ShopCreate,
    ShopFoundUpdate,
    ShopResponse,
    ShopUpdate,
    VisitCounts,
)

logger = logging.getLogger(__name__)

# Rôles autorisés à corriger les informations d'une boutique
SHOP_EDITOR_ROLES = {Role.QC, Role.SALESPERSON}


def _get_user(db: Session, user_id: uuid.UUID) -> User:
    user = db.get(User, user_id)
    if user is None:
        raise NotFoundError(f"Utilisateur {user_id} introuvable.")
    return user


def create_shop(db: Session, data: ShopCreate) -> ShopResponse:
    """Crée une boutique non assignée et non visitée."""
    shop = Shop(
        id=uuid.uuid4(),
        name=data.name,
        address=data.address,
        latitude=data.latitude,
        longitude=data.longitude,
        radius_override=data.radius_threshold_meters is not None,
        radius_threshold_meters=data.radius_threshold_meters,
        visit=False,
        visit_by_qc=False,
        visit_by_salesperson=False,
    )
    db.add(shop)
    commit_or_rollback(db)
    db.refresh(shop)

    logger.info("Boutique créée : %s (%s)", shop.name, shop.id)
    return ShopResponse.model_validate(shop)


def get_shops(db: Session, unassigned: bool = False) -> List[ShopResponse]:
    """Liste les boutiques ; unassigned=True → uniquement celles sans auditeur."""
    query = select(Shop).order_by(Shop.name)
    if unassigned:
        query = query.where(Shop.assigned_to.is_(None))
    shops = db.execute(query).scalars().all()
    return [ShopResponse.model_validate(s) for s in shops]


def get_shop(db: Session, shop_id: uuid.UUID) -> Optional[ShopResponse]:
    """Retourne une boutique par son ID, ou None si elle n'existe pas."""
    shop = db.get(Shop, shop_id)
    if shop is None:
        return None
    return ShopResponse.model_validate(shop)


def update_shop(db: Session, shop_id: uuid.UUID, data: ShopUpdate) -> ShopResponse:
    """
    Met à jour les champs fournis d'une boutique.
    Réservé aux QC et commerciaux (RoleNotAllowedError sinon).
    """
    user = _get_user(db, data.user_id)
    if parse_role(user.role) not in SHOP_EDITOR_ROLES:
        raise RoleNotAllowedError("Vous n'êtes pas autorisé à modifier les boutiques.")

    shop = db.get(Shop, shop_id)
    if shop is None:
        raise NotFoundError(f"Boutique {shop_id} introuvable.")

    update_data = data.model_dump(exclude_unset=True, exclude={"user_id"})
    for field, value in update_data.items():
        setattr(shop, field, value)

    commit_or_rollback(db)
    db.refresh(shop)
    logger.info("Boutique %s modifiée par %s : %s", shop_id, data.user_id, sorted(update_data))
    return ShopResponse.model_validate(shop)


def assign_shops(db: Session, data: ShopAssign) -> ShopAssignResult:
    """
    Assigne un lot de boutiques à un utilisateur pour un rôle.

    Validations :
    1. L'utilisateur existe et possède bien ce rôle
    2. Aucune des boutiques n'a déjà un assigné pour ce rôle
       (AssignmentConflictError avec la liste des boutiques concernées)
    """
    user = db.get(User, data.user_id)
    if user is None or parse_role(user.role) != data.role:
        raise ValueError(f"Utilisateur {data.user_id} invalide pour le rôle {data.role.value}.")

    column = getattr(Shop, fields_for(data.role).assignment)

    already_assigned = db.execute(
        select(Shop.id).where(Shop.id.in_(data.shop_ids), column.is_not(None))
    ).scalars().all()
    if already_assigned:
        raise AssignmentConflictError(
            f"Certaines boutiques sont déjà assignées pour le rôle {data.role.value}.",
            shop_ids=list(already_assigned),
        )

    result = db.execute(
        update(Shop)
        .where(Shop.id.in_(data.shop_ids), column.is_(None))
        .values({column: data.user_id, Shop.version_id: Shop.version_id + 1})
        .execution_options(synchronize_session=False)
    )
    commit_or_rollback(db)

    logger.info(
        "%d boutique(s) assignée(s) à %s (%s)",
        result.rowcount, data.user_id, data.role.value,
    )
    return ShopAssignResult(role=data.role, user_id=data.user_id, modified_count=result.rowcount)


def get_shops_for_user(db: Session, user_id: uuid.UUID) -> List[ShopResponse]:
    """Boutiques assignées à un utilisateur, selon la colonne d'assignation de son rôle."""
    user = _get_user(db, user_id)
    role = parse_role(user.role)
    if role is None:
        raise RoleNotAllowedError(f"Le rôle {user.role} n'a pas de boutiques assignées.")

    column = getattr(Shop, fields_for(role).assignment)
    shops = db.execute(
        select(Shop).where(column == user_id).order_by(Shop.name)
    ).scalars().all()
    return [ShopResponse.model_validate(s) for s in shops]


def get_visited_shops(db: Session, auditor_id: uuid.UUID) -> List[ShopResponse]:
    """Boutiques assignées à un auditeur et déjà visitées par lui."""
    shops = db.execute(
        select(Shop)
        .where(Shop.assigned_to == auditor_id, Shop.visit.is_(True))
        .order_by(Shop.visited_at.desc())
    ).scalars().all()
    return [ShopResponse.model_validate(s) for s in shops]


def get_shops_by_visit_status(db: Session, visited: bool) -> List[ShopResponse]:
    """Boutiques ayant un auditeur assigné, filtrées sur l'indicateur de visite auditeur."""
    shops = db.execute(
        select(Shop)
        .where(Shop.assigned_to.is_not(None), Shop.visit.is_(visited))
        .order_by(Shop.name)
    ).scalars().all()
    return [ShopResponse.model_validate(s) for s in shops]


def mark_shop_found(db: Session, shop_id: uuid.UUID, data: ShopFoundUpdate) -> ShopResponse:
    """Enregistre le signalement terrain « boutique trouvée / introuvable »."""
    shop = db.get(Shop, shop_id)
    if shop is None:
        raise NotFoundError(f"Boutique {shop_id} introuvable.")

    shop.shop_found = data.status
    shop.shop_found_latitude = data.latitude
    shop.shop_found_longitude = data.longitude
    shop.shop_found_by = data.user_id
    shop.shop_found_at = datetime.now(timezone.utc)
    commit_or_rollback(db)
    db.refresh(shop)

    logger.info("Boutique %s signalée %s", shop_id, "trouvée" if data.status else "introuvable")
    return ShopResponse.model_validate(shop)


def _count(db: Session, *conditions) -> int:
    return db.execute(
        select(func.count()).select_from(Shop).where(*conditions)
    ).scalar() or 0


def get_visit_counts(db: Session, user_id: Optional[uuid.UUID] = None) -> VisitCounts:
    """
    Compte les boutiques visitées / non visitées.

    - Sans user_id : compteurs globaux sur l'indicateur de visite auditeur
    - Avec user_id : boutiques assignées à l'utilisateur, sur l'indicateur de son rôle
      (RoleNotAllowedError pour un rôle qui ne visite pas)
    """
    if user_id is None:
        visited = _count(db, Shop.visit.is_(True))
        not_visited = _count(db, Shop.visit.is_(False))
        return VisitCounts(scope="global", visited=visited, not_visited=not_visited,
                           total=visited + not_visited)

    user = _get_user(db, user_id)
    role = parse_role(user.role)
    if role is None or not ROLE_FIELDS[role].can_visit:
        raise RoleNotAllowedError(f"Rôle {user.role} non pris en charge pour les statistiques de visite.")

    fields = ROLE_FIELDS[role]
    assigned = getattr(Shop, fields.assignment) == user_id
    visited_column = getattr(Shop, fields.visited)

    visited = _count(db, assigned, visited_column.is_(True))
    not_visited = _count(db, assigned, visited_column.is_(False))
    return VisitCounts(scope=role.value, visited=visited, not_visited=not_visited,
                       total=visited + not_visited)
