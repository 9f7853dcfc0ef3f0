"""
Router pour les utilisateurs et leurs boutiques assignées.
"""

import uuid
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from app.database import get_db
from app.exceptions import http_status_for
from app.schemas.shop import ShopResponse
from app.schemas.user import UserCreate, UserResponse
from app.services import shop_service, user_service

router = APIRouter(prefix="/api/v1/users", tags=["Utilisateurs"])


@router.post("", response_model=UserResponse, status_code=201, summary="Créer un utilisateur")
def create_user(data: UserCreate, db: Session = Depends(get_db)):
    """Crée un utilisateur. Retourne 400 si le nom d'utilisateur est déjà pris."""
    try:
        return user_service.create_user(db, data)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.get("", response_model=List[UserResponse], summary="Lister les utilisateurs")
def list_users(role: Optional[str] = None, db: Session = Depends(get_db)):
    """Retourne les utilisateurs triés par nom d'utilisateur, filtrés par rôle si fourni."""
    return user_service.list_users(db, role)


@router.get("/{user_id}", response_model=UserResponse, summary="Détail d'un utilisateur")
def get_user(user_id: uuid.UUID, db: Session = Depends(get_db)):
    user = user_service.get_user(db, user_id)
    if user is None:
        raise HTTPException(status_code=404, detail="Utilisateur introuvable.")
    return user


@router.get("/{user_id}/shops", response_model=List[ShopResponse], summary="Boutiques assignées à un utilisateur")
def list_user_shops(user_id: uuid.UUID, db: Session = Depends(get_db)):
    """Boutiques assignées à l'utilisateur pour son rôle (auditeur, QC, commercial ou manager)."""
    try:
        return shop_service.get_shops_for_user(db, user_id)
    except ValueError as e:
        raise HTTPException(status_code=http_status_for(e), detail=str(e))
