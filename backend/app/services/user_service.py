"""
Service métier pour les utilisateurs.
"""

import uuid
import logging
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.database import commit_or_rollback
from app.models.user import User
from app.schemas.user import UserCreate, UserResponse

logger = logging.getLogger(__name__)


def create_user(db: Session, data: UserCreate) -> UserResponse:
    """
    Crée un utilisateur.
    Lève ValueError si le nom d'utilisateur est déjà pris.
    """
    existing = db.execute(
        select(User).where(User.username == data.username)
    ).scalars().first()
    if existing is not None:
        raise ValueError(f"Le nom d'utilisateur '{data.username}' est déjà utilisé.")

    user = User(
        id=uuid.uuid4(),
        username=data.username,
        name=data.name,
        email=data.email,
        role=data.role,
    )
    db.add(user)
    commit_or_rollback(db)
    db.refresh(user)

    logger.info("Utilisateur créé : %s (%s)", user.username, user.role)
    return UserResponse.model_validate(user)


def list_users(db: Session, role: Optional[str] = None) -> List[UserResponse]:
    """Liste les utilisateurs, éventuellement filtrés par rôle."""
    query = select(User).order_by(User.username)
    if role:
        query = query.where(User.role == role.strip().lower())
    users = db.execute(query).scalars().all()
    return [UserResponse.model_validate(u) for u in users]


def get_user(db: Session, user_id: uuid.UUID) -> Optional[UserResponse]:
    user = db.get(User, user_id)
    if user is None:
        return None
    return UserResponse.model_validate(user)
