"""
Tests du service des jetons de confirmation (base SQLite en mémoire).
"""

from datetime import datetime, timedelta

from tripshare.models.confirmation_token import ConfirmationToken
from tripshare.schemas.workflow import Outcome
from tripshare.services import token_service
from tripshare.services.token_service import TokenPurpose

NOW = datetime(2026, 3, 2, 9, 0)


def test_issue_puis_redeem(db):
    token = token_service.issue(db, "trip-1", TokenPurpose.TRIP_APPROVAL, timedelta(hours=48), now=NOW)

    result = token_service.redeem(db, token, "approve", now=NOW + timedelta(hours=1))

    assert result.outcome == Outcome.OK
    assert result.subject == "trip-1"
    row = db.query(ConfirmationToken).filter_by(token=token).one()
    assert row.consumed_at == NOW + timedelta(hours=1)
    assert row.outcome == "approve"


def test_double_redeem_deja_consomme(db):
    """La seconde consommation retourne toujours AlreadyConsumed."""
    token = token_service.issue(db, "trip-1", TokenPurpose.TRIP_APPROVAL, timedelta(hours=48), now=NOW)

    first = token_service.redeem(db, token, "approve", now=NOW)
    second = token_service.redeem(db, token, "reject", now=NOW)

    assert first.outcome == Outcome.OK
    assert second.outcome == Outcome.ALREADY_CONSUMED
    assert db.query(ConfirmationToken).filter_by(token=token).one().outcome == "approve"


def test_jeton_inconnu(db):
    assert token_service.redeem(db, "inexistant", "approve", now=NOW).outcome == Outcome.NOT_FOUND


def test_mauvais_usage_introuvable(db):
    token = token_service.issue(db, "user-1", TokenPurpose.MANAGER_VERIFICATION, timedelta(days=7), now=NOW)

    result = token_service.redeem(db, token, "approve", purpose=TokenPurpose.TRIP_APPROVAL, now=NOW)

    assert result.outcome == Outcome.NOT_FOUND


def test_jeton_expire_marque(db):
    """Un jeton expiré est marqué et ne redevient jamais utilisable."""
    token = token_service.issue(db, "trip-1", TokenPurpose.TRIP_APPROVAL, timedelta(hours=48), now=NOW)

    late = NOW + timedelta(hours=49)
    first = token_service.redeem(db, token, "approve", now=late)
    second = token_service.redeem(db, token, "approve", now=late)

    assert first.outcome == Outcome.EXPIRED
    assert second.outcome == Outcome.EXPIRED
    row = db.query(ConfirmationToken).filter_by(token=token).one()
    assert row.outcome == token_service.EXPIRED_OUTCOME
    assert row.consumed_at is not None


def test_jetons_uniques_et_longs(db):
    tokens = {
        token_service.issue(db, f"trip-{i}", TokenPurpose.TRIP_APPROVAL, timedelta(hours=1), now=NOW)
        for i in range(20)
    }
    assert len(tokens) == 20
    assert all(len(t) >= 40 for t in tokens)


def test_supersede_neutralise_les_jetons_actifs(db):
    old = token_service.issue(db, "trip-1", TokenPurpose.TRIP_APPROVAL, timedelta(hours=48), now=NOW)

    count = token_service.supersede(db, "trip-1", TokenPurpose.TRIP_APPROVAL, now=NOW)
    db.commit()

    assert count == 1
    assert token_service.active_token_for(db, "trip-1", TokenPurpose.TRIP_APPROVAL, now=NOW) is None
    assert token_service.redeem(db, old, "approve", now=NOW).outcome == Outcome.ALREADY_CONSUMED


def test_active_token_for_ignore_les_expires(db):
    token = token_service.issue(db, "trip-1", TokenPurpose.TRIP_APPROVAL, timedelta(hours=2), now=NOW)

    assert token_service.active_token_for(db, "trip-1", TokenPurpose.TRIP_APPROVAL, now=NOW) == token
    assert token_service.active_token_for(
        db, "trip-1", TokenPurpose.TRIP_APPROVAL, now=NOW + timedelta(hours=3)
    ) is None
