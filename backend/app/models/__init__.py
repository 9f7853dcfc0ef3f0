# Importe tous les modèles pour enregistrer leurs tables dans Base.metadata
# avant que SQLAlchemy tente de résoudre les clés étrangères inter-modèles.
# Sans cet import, les FK comme shops.assigned_to → users.id échouent
# avec NoReferencedTableError si user.py n'est pas chargé avant shop.py.

from app.models.user import User  # noqa: F401  (doit précéder shop et visit)
from app.models.shop import Shop  # noqa: F401
from app.models.visit import VisitAttempt  # noqa: F401
