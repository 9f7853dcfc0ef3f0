"""
Rôles terrain et table de correspondance vers les colonnes de la boutique.

Chaque rôle porte sa colonne d'assignation et, pour les rôles qui visitent,
ses colonnes « visité », « visité par » et « visité le ». Les services lisent
cette table au lieu de comparer des chaînes de rôle.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class Role(str, Enum):
    AUDITOR = "auditor"
    QC = "qc"
    SALESPERSON = "salesperson"
    MANAGER = "manager"


# Rôles non terrain (administration), ne peuvent pas être assignés à une boutique
STAFF_ROLES = {"admin", "supervisor", "executive"}
ALL_USER_ROLES = STAFF_ROLES | {r.value for r in Role}


@dataclass(frozen=True)
class RoleFields:
    """Noms des colonnes de Shop manipulées pour un rôle."""
    assignment: str
    visited: Optional[str] = None
    visited_by: Optional[str] = None
    visited_at: Optional[str] = None

    @property
    def can_visit(self) -> bool:
        return self.visited is not None


ROLE_FIELDS = {
    Role.AUDITOR: RoleFields("assigned_to", "visit", "visited_by", "visited_at"),
    Role.QC: RoleFields("assigned_qc", "visit_by_qc", "visited_by_qc_id", "visited_at_by_qc"),
    Role.SALESPERSON: RoleFields(
        "assigned_salesperson",
        "visit_by_salesperson",
        "visited_by_salesperson_id",
        "visited_at_by_salesperson",
    ),
    Role.MANAGER: RoleFields("assigned_manager_id"),
}


def parse_role(value: Optional[str]) -> Optional[Role]:
    """Retourne le Role correspondant à une chaîne, ou None si ce n'est pas un rôle terrain."""
    try:
        return Role(value)
    except ValueError:
        return None


def fields_for(role: Role) -> RoleFields:
    return ROLE_FIELDS[role]
