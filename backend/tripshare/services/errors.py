"""
Erreurs métier internes du workflow.

Levées à l'intérieur des services puis converties en résultat typé (Outcome)
à la frontière de chaque opération publique.
"""

from tripshare.schemas.workflow import Outcome


class WorkflowError(Exception):
    outcome = Outcome.VALIDATION_ERROR

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationFailed(WorkflowError):
    outcome = Outcome.VALIDATION_ERROR


class NotFound(WorkflowError):
    outcome = Outcome.NOT_FOUND


class AlreadyResolved(WorkflowError):
    outcome = Outcome.ALREADY_RESOLVED


class AlreadyConsumed(WorkflowError):
    outcome = Outcome.ALREADY_CONSUMED


class IllegalTransition(WorkflowError):
    outcome = Outcome.ILLEGAL_TRANSITION


class TokenExpired(WorkflowError):
    outcome = Outcome.EXPIRED
