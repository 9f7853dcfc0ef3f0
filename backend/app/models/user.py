"""
Modèle SQLAlchemy pour les utilisateurs (administration et terrain).
L'authentification est gérée en amont : seul le rôle est lu par les services.
"""

import uuid
from sqlalchemy import Column, DateTime, String, func
from sqlalchemy.dialects.postgresql import UUID

from app.database import Base


class User(Base):
    __tablename__ = "users"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    username = Column(String(100), unique=True, nullable=False)
    name = Column(String(200), nullable=True)
    email = Column(String(255), nullable=True)
    role = Column(String(50), nullable=False)  # admin, manager, supervisor, executive, auditor, qc, salesperson
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())
