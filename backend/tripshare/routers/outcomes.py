"""
Traduction des résultats typés du workflow en réponses HTTP.
"""

from fastapi import HTTPException

from tripshare.schemas.workflow import Outcome

HTTP_STATUS = {
    Outcome.VALIDATION_ERROR: 422,
    Outcome.NOT_FOUND: 404,
    Outcome.ALREADY_RESOLVED: 409,
    Outcome.ALREADY_CONSUMED: 409,
    Outcome.ILLEGAL_TRANSITION: 409,
    Outcome.EXPIRED: 410,
}


def ensure_ok(result):
    """Retourne le résultat s'il est OK, lève l'HTTPException correspondante sinon."""
    if result.outcome != Outcome.OK:
        raise HTTPException(
            status_code=HTTP_STATUS[result.outcome],
            detail={"outcome": result.outcome.value, "message": result.message},
        )
    return result
