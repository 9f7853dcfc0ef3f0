"""
Modèle SQLAlchemy pour les boutiques auditées.

Chaque rôle terrain possède sa propre colonne d'assignation et ses propres
indicateurs de visite (voir app.roles) : une boutique peut être visitée par
l'auditeur sans l'être encore par le QC.
"""

import uuid
from sqlalchemy import Boolean, Column, DateTime, Float, ForeignKey, Integer, String, Text, func
from sqlalchemy.dialects.postgresql import UUID

from app.database import Base


class Shop(Base):
    __tablename__ = "shops"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(String(255), nullable=False)
    address = Column(Text, nullable=True)

    # Coordonnées de référence (NULL = inconnues → validation GPS en no_data)
    latitude = Column(Float, nullable=True)
    longitude = Column(Float, nullable=True)
    radius_override = Column(Boolean, default=False)
    radius_threshold_meters = Column(Float, nullable=True)  # Lu uniquement si radius_override

    # Assignations par rôle
    assigned_to = Column(UUID(as_uuid=True), ForeignKey("users.id"), nullable=True)  # auditeur
    assigned_qc = Column(UUID(as_uuid=True), ForeignKey("users.id"), nullable=True)
    assigned_salesperson = Column(UUID(as_uuid=True), ForeignKey("users.id"), nullable=True)
    assigned_manager_id = Column(UUID(as_uuid=True), ForeignKey("users.id"), nullable=True)

    # Visite auditeur
    visit = Column(Boolean, default=False, nullable=False)
    visited_by = Column(UUID(as_uuid=True), nullable=True)
    visited_at = Column(DateTime, nullable=True)

    # Visite QC
    visit_by_qc = Column(Boolean, default=False, nullable=False)
    visited_by_qc_id = Column(UUID(as_uuid=True), nullable=True)
    visited_at_by_qc = Column(DateTime, nullable=True)

    # Visite commercial
    visit_by_salesperson = Column(Boolean, default=False, nullable=False)
    visited_by_salesperson_id = Column(UUID(as_uuid=True), nullable=True)
    visited_at_by_salesperson = Column(DateTime, nullable=True)

    # Boutique trouvée / introuvable sur le terrain
    shop_found = Column(Boolean, nullable=True)
    shop_found_latitude = Column(Float, nullable=True)
    shop_found_longitude = Column(Float, nullable=True)
    shop_found_by = Column(UUID(as_uuid=True), nullable=True)
    shop_found_at = Column(DateTime, nullable=True)

    # Verrou optimiste : un UPDATE concurrent sur la même ligne lève StaleDataError
    version_id = Column(Integer, nullable=False, default=1)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    __mapper_args__ = {"version_id_col": version_id}
