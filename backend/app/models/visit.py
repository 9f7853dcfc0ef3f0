"""
Modèle SQLAlchemy pour les passages de visite (une tentative = un passage d'un rôle).

Cycle de vie : STARTED → CAPTURED → SUBMITTED.
Les trois checkpoints GPS sont stockés à plat (une colonne par coordonnée),
les résultats de détection produit et de validation GPS en JSON.
"""

import uuid
from sqlalchemy import JSON, Column, DateTime, Float, ForeignKey, Index, Integer, String, Text, func, text
from sqlalchemy.dialects.postgresql import UUID

from app.database import Base


class VisitAttempt(Base):
    """Passage d'un auditeur / QC / commercial sur une boutique."""
    __tablename__ = "visit_attempts"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    shop_id = Column(UUID(as_uuid=True), ForeignKey("shops.id", ondelete="CASCADE"), nullable=False)
    status = Column(String(20), nullable=False, default="STARTED")  # STARTED, CAPTURED, SUBMITTED

    # Checkpoint « début d'audit »
    start_audit_latitude = Column(Float, nullable=True)
    start_audit_longitude = Column(Float, nullable=True)
    start_audit_at = Column(DateTime, nullable=True)

    # Checkpoint « prise de photo »
    photo_click_latitude = Column(Float, nullable=True)
    photo_click_longitude = Column(Float, nullable=True)
    photo_click_at = Column(DateTime, nullable=True)

    # Checkpoint « validation / envoi »
    proceed_click_latitude = Column(Float, nullable=True)
    proceed_click_longitude = Column(Float, nullable=True)
    proceed_click_at = Column(DateTime, nullable=True)

    shop_image = Column(Text, nullable=True)   # URL de stockage
    shelf_image = Column(Text, nullable=True)  # URL de stockage, analysée par la détection produit

    detection = Column(JSON, nullable=True)
    gps_validation = Column(JSON, nullable=True)

    role = Column(String(20), nullable=True)  # auditor, qc, salesperson, connu à la soumission
    submitted_by = Column(UUID(as_uuid=True), ForeignKey("users.id"), nullable=True)
    submitted_at = Column(DateTime, nullable=True)

    version_id = Column(Integer, nullable=False, default=1)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        # Au plus un passage non soumis par boutique
        Index(
            "uq_visit_attempts_open_per_shop",
            "shop_id",
            unique=True,
            postgresql_where=text("status <> 'SUBMITTED'"),
        ),
    )

    __mapper_args__ = {"version_id_col": version_id}
