"""
Configuration de la connexion à la base de données PostgreSQL.
Les timeouts de connexion et de requête sont bornés par la configuration.
"""

import logging

from sqlalchemy import create_engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, declarative_base
from sqlalchemy.orm import sessionmaker

from app.config import settings
from app.exceptions import PersistenceError

logger = logging.getLogger(__name__)

engine = create_engine(
    settings.DATABASE_URL,
    pool_pre_ping=True,
    connect_args={
        "connect_timeout": settings.DATABASE_CONNECT_TIMEOUT_SECONDS,
        "options": f"-c statement_timeout={settings.DATABASE_STATEMENT_TIMEOUT_MS}",
    },
)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def get_db():
    """Dépendance FastAPI : fournit une session BDD et la ferme après usage."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def commit_or_rollback(db: Session) -> None:
    """
    Commit la transaction courante. En cas d'échec (y compris conflit de version
    optimiste), annule tout et lève PersistenceError : aucun état partiel n'est visible.
    """
    try:
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.error("Échec d'écriture en base, transaction annulée : %s", exc)
        raise PersistenceError("Échec de l'enregistrement, aucune modification appliquée.") from exc
