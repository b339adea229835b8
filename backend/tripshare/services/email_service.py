"""
Service d'envoi d'emails SMTP : notifications du workflow de trajets.

Le notificateur ne lève jamais : un échec d'envoi est logué et signalé par
un retour False, la transition métier déjà validée n'est jamais annulée.
"""

import enum
import logging
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from html import escape
from typing import Any, Dict, List, Sequence

from tripshare.config import settings

logger = logging.getLogger(__name__)


class NotificationCategory(str, enum.Enum):
    MANAGER_CONFIRMATION_REQUEST = "manager_confirmation_request"
    MANAGER_VERIFICATION = "manager_verification"
    APPROVAL_RESULT = "approval_result"
    OPTIMIZATION_PROPOSAL_RESULT = "optimization_proposal_result"
    REMINDER = "reminder"
    URGENT_ALERT = "urgent_alert"
    APPROVAL_EXPIRED = "approval_expired"


def _trip_table(trip: Dict[str, Any]) -> str:
    rows = [
        ("Départ", trip.get("departure_location")),
        ("Destination", trip.get("destination")),
        ("Date de départ", f"{trip.get('departure_date')} {trip.get('departure_time')}"),
        ("Retour", f"{trip.get('return_date')} {trip.get('return_time')}"),
        ("Motif", trip.get("purpose")),
    ]
    cells = "".join(
        f'<tr><td style="padding: 6px 0; color: #666; width: 40%;">{label}</td>'
        f'<td style="padding: 6px 0; font-weight: 500;">{escape(str(value))}</td></tr>'
        for label, value in rows if value
    )
    return f'<table style="width: 100%; border-collapse: collapse;">{cells}</table>'


def _action_buttons(data: Dict[str, Any]) -> str:
    return (
        f'<p style="text-align: center; margin: 24px 0;">'
        f'<a href="{data["approve_url"]}" style="background: #28a745; color: white; padding: 12px 28px; '
        f'text-decoration: none; border-radius: 6px; margin: 0 8px;">Approuver</a>'
        f'<a href="{data["reject_url"]}" style="background: #dc3545; color: white; padding: 12px 28px; '
        f'text-decoration: none; border-radius: 6px; margin: 0 8px;">Refuser</a></p>'
    )


def render(category: NotificationCategory, data: Dict[str, Any]) -> tuple:
    """Retourne (sujet, corps HTML) pour une catégorie de notification."""
    trip = data.get("trip", {})
    user_name = escape(str(trip.get("user_name") or trip.get("user_email") or ""))

    if category == NotificationCategory.MANAGER_CONFIRMATION_REQUEST:
        prefix = "[URGENT] " if trip.get("is_urgent") else ""
        subject = f"{prefix}Demande d'approbation de trajet — {user_name}"
        body = (
            f"<p><strong>{user_name}</strong> a soumis un trajet professionnel "
            f"qui requiert votre approbation.</p>{_trip_table(trip)}{_action_buttons(data)}"
            f"<p style=\"font-size: 13px; color: #856404;\">Ce lien est valable jusqu'au "
            f"{data.get('expires_at')}. Passé ce délai, la demande sera traitée par un administrateur.</p>"
        )
    elif category == NotificationCategory.REMINDER:
        subject = f"Rappel — trajet de {user_name} en attente d'approbation"
        body = (
            f"<p>Le trajet de <strong>{user_name}</strong> attend toujours votre décision.</p>"
            f"{_trip_table(trip)}{_action_buttons(data)}"
        )
    elif category == NotificationCategory.MANAGER_VERIFICATION:
        subject = f"Confirmez que vous êtes le manager de {escape(str(data.get('user_name', '')))}"
        body = (
            f"<p><strong>{escape(str(data.get('user_name', '')))}</strong> vous a désigné comme manager. "
            f"Les trajets de cette personne vous seront soumis pour approbation.</p>"
            f"<p><a href=\"{data['confirm_url']}\">Confirmer</a> — "
            f"<a href=\"{data['reject_url']}\">Refuser</a></p>"
        )
    elif category == NotificationCategory.APPROVAL_RESULT:
        approved = data.get("status") == "approved"
        verdict = "approuvé" if approved else "refusé"
        subject = f"Votre trajet a été {verdict}"
        reason = data.get("reason")
        body = (
            f"<p>Bonjour {user_name},</p><p>Votre demande de trajet a été <strong>{verdict}</strong>"
            f" par {escape(str(data.get('decided_by', '')))}.</p>"
            + (f"<p><strong>Motif :</strong> {escape(str(reason))}</p>" if reason else "")
            + _trip_table(trip)
        )
    elif category == NotificationCategory.OPTIMIZATION_PROPOSAL_RESULT:
        approved = data.get("status") == "approved"
        subject = (
            "Votre trajet a été regroupé avec d'autres voyageurs"
            if approved else "Votre trajet reste individuel"
        )
        body = (
            f"<p>Bonjour {user_name},</p>"
            + (
                f"<p>Votre trajet partagera un véhicule <strong>{escape(str(data.get('vehicle_type')))}</strong> "
                f"avec {data.get('member_count', 0) - 1} collègue(s). "
                f"Nouvel horaire de départ : <strong>{data.get('proposed_departure_time')}</strong>.</p>"
                if approved else
                "<p>La proposition de regroupement n'a pas été retenue ; votre trajet reste inchangé.</p>"
            )
            + _trip_table(trip)
        )
    elif category == NotificationCategory.URGENT_ALERT:
        subject = f"[TRAJET URGENT] {user_name} — départ dans moins de 24h"
        body = (
            f"<p><strong>{user_name}</strong> a soumis un trajet urgent.</p>{_trip_table(trip)}"
            f"<p>Demande envoyée au manager : {escape(str(trip.get('manager_email') or ''))}</p>"
        )
    elif category == NotificationCategory.APPROVAL_EXPIRED:
        subject = f"Approbation expirée — trajet de {user_name}"
        body = (
            f"<p>La demande d'approbation du trajet de <strong>{user_name}</strong> n'a pas reçu "
            f"de réponse dans le délai imparti. Un administrateur doit la traiter.</p>{_trip_table(trip)}"
        )
    else:
        raise ValueError(f"Catégorie de notification inconnue : {category}")

    html = f"""
    <html>
      <body style="font-family: Arial, sans-serif; color: #333; max-width: 600px; margin: auto;">
        <h2 style="color: #1a73e8;">TripShare</h2>
        {body}
        <hr style="border: none; border-top: 1px solid #eee;" />
        <p style="font-size: 12px; color: #888;">
          Ce message est généré automatiquement par TripShare. Ne pas répondre à cet email.
        </p>
      </body>
    </html>
    """
    return subject, html


class EmailNotifier:
    """Notificateur SMTP : send(catégorie, destinataires, données) → envoyé ou non."""

    def send(
        self,
        category: NotificationCategory,
        recipients: Sequence[str],
        template_data: Dict[str, Any],
    ) -> bool:
        to: List[str] = [r for r in recipients if r]
        if not to:
            logger.warning("Notification %s ignorée : aucun destinataire", category.value)
            return False

        try:
            subject, html_content = render(category, template_data)
            msg = MIMEMultipart("alternative")
            msg["From"] = settings.SMTP_FROM
            msg["To"] = to[0]
            if len(to) > 1:
                msg["Cc"] = ", ".join(to[1:])
            msg["Subject"] = subject
            msg.attach(MIMEText(html_content, "html", "utf-8"))

            with smtplib.SMTP(settings.SMTP_HOST, settings.SMTP_PORT) as server:
                if settings.SMTP_USE_TLS:
                    server.starttls()
                if settings.SMTP_USERNAME:
                    server.login(settings.SMTP_USERNAME, settings.SMTP_PASSWORD)
                server.send_message(msg, to_addrs=to)
        except (smtplib.SMTPException, OSError, ValueError, KeyError) as exc:
            logger.error("Échec d'envoi de la notification %s à %s : %s", category.value, to, exc)
            return False

        logger.info("Notification %s envoyée à %s", category.value, ", ".join(to))
        return True


_default_notifier = EmailNotifier()


def get_notifier() -> EmailNotifier:
    """Dépendance FastAPI — notificateur par défaut."""
    return _default_notifier


def notify(notifier, category: NotificationCategory, recipients, template_data, warnings: List[str]) -> bool:
    """
    Envoie une notification et ajoute un avertissement non bloquant en cas d'échec.
    Un notificateur injecté qui lève est traité comme un échec de livraison.
    """
    try:
        delivered = notifier.send(category, list(recipients), template_data)
    except Exception as exc:  # notificateur tiers : toute erreur reste non bloquante
        logger.error("Notificateur en erreur (%s) : %s", category.value, exc, exc_info=True)
        delivered = False
    if not delivered:
        warnings.append(f"Notification '{category.value}' non délivrée à {', '.join(r for r in recipients if r)}.")
    return delivered
