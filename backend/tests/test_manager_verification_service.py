"""
Tests de la vérification des managers déclarés.
"""

from datetime import datetime, timedelta

from tripshare.models.user import User
from tripshare.schemas.manager import ManagerDeclare
from tripshare.schemas.workflow import Outcome
from tripshare.services import token_service
from tripshare.services.directory_service import SqlProfileDirectory
from tripshare.services.email_service import NotificationCategory
from tripshare.services.manager_verification_service import (
    redeem_manager_verification,
    request_manager_verification,
)
from tripshare.services.token_service import TokenPurpose

NOW = datetime(2026, 3, 2, 9, 0)


# --- Helpers ---

def add_user(db, email="alice@corp.test"):
    user = User(id="u-1", email=email, name="Alice")
    db.add(user)
    db.commit()
    return user.id


def declare(db, notifier, manager="boss@corp.test"):
    return request_manager_verification(
        db, ManagerDeclare(user_id="u-1", manager_email=manager, manager_name="Boss"),
        notifier=notifier, now=NOW,
    )


def verification_token(db):
    return token_service.active_token_for(db, "u-1", TokenPurpose.MANAGER_VERIFICATION, now=NOW)


def test_declaration_envoie_un_lien_de_7_jours(db, notifier):
    add_user(db)

    result = declare(db, notifier)

    assert result.outcome == Outcome.OK
    assert notifier.recipients_for(NotificationCategory.MANAGER_VERIFICATION) == [["boss@corp.test"]]
    assert "confirm_url" in notifier.sent[0][2]
    assert token_service.active_token_for(
        db, "u-1", TokenPurpose.MANAGER_VERIFICATION, now=NOW + timedelta(days=6)
    ) is not None
    assert token_service.active_token_for(
        db, "u-1", TokenPurpose.MANAGER_VERIFICATION, now=NOW + timedelta(days=8)
    ) is None


def test_manager_non_confirme_ignore_par_l_annuaire(db, notifier):
    add_user(db)
    declare(db, notifier)

    assert SqlProfileDirectory().get_submitter_manager(db, "u-1") is None


def test_confirmation_rend_le_manager_effectif(db, notifier):
    add_user(db)
    declare(db, notifier)

    result = redeem_manager_verification(db, verification_token(db), "confirm", now=NOW)

    assert result.outcome == Outcome.OK
    user = db.get(User, "u-1")
    assert user.manager_confirmed is True
    assert user.manager_email == "boss@corp.test"
    assert user.pending_manager_email is None
    assert SqlProfileDirectory().get_submitter_manager(db, "u-1") == "boss@corp.test"


def test_refus_conserve_l_ancien_manager(db, notifier):
    add_user(db)
    declare(db, notifier)
    redeem_manager_verification(db, verification_token(db), "confirm", now=NOW)
    declare(db, notifier, manager="other@corp.test")

    result = redeem_manager_verification(db, verification_token(db), "reject", now=NOW)

    assert result.outcome == Outcome.OK
    user = db.get(User, "u-1")
    assert user.manager_email == "boss@corp.test"
    assert user.pending_manager_email is None


def test_nouvelle_declaration_neutralise_l_ancien_lien(db, notifier):
    add_user(db)
    declare(db, notifier)
    first = verification_token(db)
    declare(db, notifier, manager="other@corp.test")

    result = redeem_manager_verification(db, first, "confirm", now=NOW)

    assert result.outcome == Outcome.ALREADY_CONSUMED


def test_double_confirmation(db, notifier):
    add_user(db)
    declare(db, notifier)
    token = verification_token(db)

    redeem_manager_verification(db, token, "confirm", now=NOW)
    second = redeem_manager_verification(db, token, "confirm", now=NOW)

    assert second.outcome == Outcome.ALREADY_CONSUMED


def test_utilisateur_son_propre_manager(db, notifier):
    add_user(db)

    result = declare(db, notifier, manager="Alice@corp.test")

    assert result.outcome == Outcome.VALIDATION_ERROR
    assert notifier.sent == []


def test_utilisateur_introuvable(db, notifier):
    assert declare(db, notifier).outcome == Outcome.NOT_FOUND


def test_action_invalide(db):
    assert redeem_manager_verification(db, "x", "approve", now=NOW).outcome == Outcome.VALIDATION_ERROR
