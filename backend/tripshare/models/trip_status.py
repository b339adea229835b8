"""
Modèle de statuts des trajets : ensemble fermé de valeurs et table des transitions légales.

Toute valeur inconnue est refusée (échec fermé) : aucune coercition silencieuse.
Les anciennes valeurs historiques ne sont acceptées que par la migration ponctuelle
(voir services/status_migration.py).
"""

import enum
from typing import Dict, FrozenSet, Optional


class TripStatus(str, enum.Enum):
    PENDING_APPROVAL = "pending_approval"          # Manager existant, départ > 24h
    PENDING_URGENT = "pending_urgent"              # Manager existant, départ < 24h
    AUTO_APPROVED = "auto_approved"                # Aucun manager confirmé
    APPROVED = "approved"                          # Approuvé par le manager ou un admin
    APPROVED_SOLO = "approved_solo"                # Évalué, aucun partenaire compatible
    PENDING_OPTIMIZATION = "pending_optimization"  # En cours de regroupement
    PROPOSED = "proposed"                          # Membre d'une proposition en attente
    OPTIMIZED = "optimized"                        # Proposition approuvée
    REJECTED = "rejected"
    CANCELLED = "cancelled"
    EXPIRED = "expired"


class ManagerApprovalStatus(str, enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class DataType(str, enum.Enum):
    RAW = "raw"    # Enregistrement de référence
    TEMP = "temp"  # Aperçu éphémère d'une proposition


class GroupStatus(str, enum.Enum):
    PROPOSED = "proposed"
    APPROVED = "approved"
    REJECTED = "rejected"


PENDING_STATUSES: FrozenSet[TripStatus] = frozenset({
    TripStatus.PENDING_APPROVAL,
    TripStatus.PENDING_URGENT,
})

# États que le moteur de regroupement peut reprendre
BATCHING_ELIGIBLE_STATUSES: FrozenSet[TripStatus] = frozenset({
    TripStatus.APPROVED,
    TripStatus.AUTO_APPROVED,
    TripStatus.APPROVED_SOLO,
})

# Candidats effectifs d'un balayage (approved_solo a déjà été évalué)
GROUPING_CANDIDATE_STATUSES: FrozenSet[TripStatus] = frozenset({
    TripStatus.APPROVED,
    TripStatus.AUTO_APPROVED,
})

TERMINAL_STATUSES: FrozenSet[TripStatus] = frozenset({
    TripStatus.REJECTED,
    TripStatus.CANCELLED,
    TripStatus.EXPIRED,
    TripStatus.OPTIMIZED,
})

_TRANSITIONS: Dict[TripStatus, FrozenSet[TripStatus]] = {
    TripStatus.PENDING_APPROVAL: frozenset({
        TripStatus.APPROVED, TripStatus.REJECTED, TripStatus.EXPIRED, TripStatus.CANCELLED,
    }),
    TripStatus.PENDING_URGENT: frozenset({
        TripStatus.APPROVED, TripStatus.REJECTED, TripStatus.EXPIRED, TripStatus.CANCELLED,
    }),
    TripStatus.AUTO_APPROVED: frozenset({
        TripStatus.PENDING_OPTIMIZATION, TripStatus.APPROVED_SOLO, TripStatus.CANCELLED,
    }),
    TripStatus.APPROVED: frozenset({
        TripStatus.PENDING_OPTIMIZATION, TripStatus.APPROVED_SOLO, TripStatus.CANCELLED,
    }),
    TripStatus.APPROVED_SOLO: frozenset({TripStatus.CANCELLED}),
    TripStatus.PENDING_OPTIMIZATION: frozenset({
        TripStatus.PROPOSED, TripStatus.APPROVED, TripStatus.AUTO_APPROVED,
    }),
    TripStatus.PROPOSED: frozenset({
        TripStatus.OPTIMIZED, TripStatus.APPROVED, TripStatus.AUTO_APPROVED,
    }),
    TripStatus.OPTIMIZED: frozenset(),
    TripStatus.REJECTED: frozenset(),
    TripStatus.CANCELLED: frozenset(),
    TripStatus.EXPIRED: frozenset(),
}

# Dérogation administrative explicite : annulation d'une optimisation déjà approuvée.
# Ne fait pas partie de la table normale et doit toujours être journalisée.
_OVERRIDE_TRANSITIONS: Dict[TripStatus, FrozenSet[TripStatus]] = {
    TripStatus.OPTIMIZED: frozenset({TripStatus.APPROVED, TripStatus.AUTO_APPROVED}),
}

# Valeurs historiques → valeurs canoniques (migration ponctuelle uniquement)
LEGACY_STATUS_MAP: Dict[str, TripStatus] = {
    "draft": TripStatus.PENDING_APPROVAL,
    "pending": TripStatus.PENDING_APPROVAL,
    "confirmed": TripStatus.APPROVED,
}


def parse_status(value) -> Optional[TripStatus]:
    """Convertit une valeur brute en TripStatus ; retourne None si elle est inconnue."""
    if isinstance(value, TripStatus):
        return value
    try:
        return TripStatus(value)
    except ValueError:
        return None


def can_transition(current, target) -> bool:
    """Indique si la transition current → target figure dans la table légale."""
    src = parse_status(current)
    dst = parse_status(target)
    if src is None or dst is None:
        return False
    return dst in _TRANSITIONS[src]


def can_override(current, target) -> bool:
    """Transitions de dérogation administrative (hors table normale)."""
    src = parse_status(current)
    dst = parse_status(target)
    if src is None or dst is None:
        return False
    return dst in _OVERRIDE_TRANSITIONS.get(src, frozenset())


def sources_for(target: TripStatus, within=None) -> FrozenSet[TripStatus]:
    """
    États depuis lesquels target est atteignable.
    Sert de précondition dans les UPDATE conditionnels (même transaction que la mutation).
    """
    sources = frozenset(src for src, targets in _TRANSITIONS.items() if target in targets)
    if within is not None:
        sources = sources & frozenset(within)
    return sources


def is_terminal(status) -> bool:
    parsed = parse_status(status)
    return parsed is None or parsed in TERMINAL_STATUSES


def pre_proposal_status(auto_approved: bool) -> TripStatus:
    """Statut d'un trajet avant son entrée dans une proposition."""
    return TripStatus.AUTO_APPROVED if auto_approved else TripStatus.APPROVED
