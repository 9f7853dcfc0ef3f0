"""
Erreurs métier levées par les services et traduites en codes HTTP par les routers.

Les erreurs de précondition héritent de ValueError : aucune mutation n'a eu lieu
quand elles sont levées. PersistenceError signale un échec de commit après rollback.
"""

from typing import List, Optional


class NotFoundError(ValueError):
    """Boutique, utilisateur ou passage introuvable (404)."""


class NoOpenAttemptError(ValueError):
    """Aucun passage ouvert ne correspond à l'identifiant fourni (409)."""


class NotAssignedError(ValueError):
    """La boutique n'est pas assignée à cet utilisateur pour son rôle (403)."""


class RoleNotAllowedError(ValueError):
    """Le rôle de l'utilisateur ne permet pas l'opération (403)."""


class AssignmentConflictError(ValueError):
    """Certaines boutiques ont déjà un assigné pour ce rôle (409)."""

    def __init__(self, message: str, shop_ids: Optional[List] = None):
        super().__init__(message)
        self.shop_ids = shop_ids or []


class PersistenceError(RuntimeError):
    """Échec d'écriture en base ; la session a été annulée, aucun état n'a changé."""


# Code HTTP de chaque erreur métier ; toute autre ValueError → 400
HTTP_STATUS_CODES = {
    NotFoundError: 404,
    NoOpenAttemptError: 409,
    NotAssignedError: 403,
    RoleNotAllowedError: 403,
    AssignmentConflictError: 409,
}


def http_status_for(exc: ValueError) -> int:
    for error_type, status_code in HTTP_STATUS_CODES.items():
        if isinstance(exc, error_type):
            return status_code
    return 400
