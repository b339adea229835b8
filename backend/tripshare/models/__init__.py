# Importe tous les modèles pour enregistrer leurs tables dans Base.metadata
# avant que SQLAlchemy tente de résoudre les clés étrangères inter-modèles.
# Sans cet import, trips.optimized_group_id → proposal_groups.id échoue
# avec NoReferencedTableError si proposal_group.py n'est pas chargé.

from tripshare.models.user import User  # noqa: F401
from tripshare.models.vehicle import Vehicle  # noqa: F401  (doit précéder trip)
from tripshare.models.proposal_group import ProposalGroup  # noqa: F401  (doit précéder trip)
from tripshare.models.trip import Trip  # noqa: F401
from tripshare.models.confirmation_token import ConfirmationToken  # noqa: F401
from tripshare.models.audit_entry import AuditEntry  # noqa: F401
