"""
Tests unitaires du notificateur SMTP et des gabarits.
"""

import smtplib
from unittest.mock import MagicMock, patch

import pytest

from tripshare.services.email_service import EmailNotifier, NotificationCategory, notify, render

TRIP = {
    "user_name": "Alice",
    "user_email": "alice@corp.test",
    "departure_location": "Hanoi",
    "destination": "Haiphong",
    "departure_date": "2026-03-10",
    "departure_time": "09:00",
    "return_date": "2026-03-10",
    "return_time": "18:00",
    "purpose": "Visite <client>",
    "is_urgent": True,
    "manager_email": "boss@corp.test",
}

LINKS = {"approve_url": "http://x/approve", "reject_url": "http://x/reject", "expires_at": "12/03/2026 09:00"}


@pytest.mark.parametrize("category,data", [
    (NotificationCategory.MANAGER_CONFIRMATION_REQUEST, {"trip": TRIP, **LINKS}),
    (NotificationCategory.REMINDER, {"trip": TRIP, **LINKS}),
    (NotificationCategory.MANAGER_VERIFICATION, {"user_name": "Alice", "confirm_url": "c", "reject_url": "r"}),
    (NotificationCategory.APPROVAL_RESULT, {"trip": TRIP, "status": "rejected", "reason": "Budget", "decided_by": "boss"}),
    (NotificationCategory.OPTIMIZATION_PROPOSAL_RESULT,
     {"trip": TRIP, "status": "approved", "vehicle_type": "car-7", "member_count": 5,
      "proposed_departure_time": "09:03"}),
    (NotificationCategory.URGENT_ALERT, {"trip": TRIP}),
    (NotificationCategory.APPROVAL_EXPIRED, {"trip": TRIP}),
])
def test_chaque_categorie_a_un_gabarit(category, data):
    subject, html = render(category, data)

    assert subject
    assert "TripShare" in html


def test_demande_urgente_prefixe_le_sujet():
    subject, html = render(NotificationCategory.MANAGER_CONFIRMATION_REQUEST, {"trip": TRIP, **LINKS})

    assert subject.startswith("[URGENT]")
    assert "http://x/approve" in html
    assert "Visite &lt;client&gt;" in html


def test_envoi_smtp_succes():
    with patch("tripshare.services.email_service.smtplib.SMTP") as smtp_cls:
        server = MagicMock()
        smtp_cls.return_value.__enter__.return_value = server

        sent = EmailNotifier().send(
            NotificationCategory.URGENT_ALERT, ["admin@corp.test", "ops@corp.test"], {"trip": TRIP},
        )

    assert sent is True
    msg = server.send_message.call_args[0][0]
    assert msg["To"] == "admin@corp.test"
    assert msg["Cc"] == "ops@corp.test"
    assert server.send_message.call_args[1]["to_addrs"] == ["admin@corp.test", "ops@corp.test"]


def test_echec_smtp_retourne_false():
    with patch("tripshare.services.email_service.smtplib.SMTP") as smtp_cls:
        smtp_cls.side_effect = smtplib.SMTPException("refusé")

        sent = EmailNotifier().send(NotificationCategory.URGENT_ALERT, ["admin@corp.test"], {"trip": TRIP})

    assert sent is False


def test_sans_destinataire_retourne_false():
    with patch("tripshare.services.email_service.smtplib.SMTP") as smtp_cls:
        sent = EmailNotifier().send(NotificationCategory.REMINDER, [None, ""], {"trip": TRIP, **LINKS})

    assert sent is False
    smtp_cls.assert_not_called()


def test_notify_ajoute_un_avertissement_si_le_notificateur_leve():
    notifier = MagicMock()
    notifier.send.side_effect = RuntimeError("fournisseur indisponible")
    warnings = []

    delivered = notify(notifier, NotificationCategory.APPROVAL_RESULT, ["alice@corp.test"], {}, warnings)

    assert delivered is False
    assert len(warnings) == 1
    assert "alice@corp.test" in warnings[0]
