"""
Schémas Pydantic pour les utilisateurs.
"""

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, field_validator

from app.roles import ALL_USER_ROLES


class UserCreate(BaseModel):
    username: str
    name: Optional[str] = None
    email: Optional[str] = None
    role: str

    @field_validator("username")
    @classmethod
    def username_not_empty(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Le nom d'utilisateur ne peut pas être vide.")
        return v.strip().lower()

    @field_validator("role")
    @classmethod
    def valid_role(cls, v: str) -> str:
        v = v.strip().lower()
        if v not in ALL_USER_ROLES:
            raise ValueError(f"Rôle invalide. Valeurs acceptées : {sorted(ALL_USER_ROLES)}")
        return v


class UserResponse(BaseModel):
    id: uuid.UUID
    username: str
    name: Optional[str]
    email: Optional[str]
    role: str
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}
