"""
Tests d'intégration API pour les trajets.
Testent les URLs, les codes HTTP, la validation et le format des réponses.
"""

import uuid
from datetime import date, datetime, time, timedelta
from unittest.mock import MagicMock, patch

from tripshare.main import app
from tripshare.models.trip_status import TripStatus
from tripshare.schemas.trip import TripResponse
from tripshare.schemas.vehicle import VehicleResponse
from tripshare.schemas.workflow import Outcome, TripActionResult
from tripshare.services.audit_service import get_audit_ledger
from tripshare.services.status_migration import MigrationReport


# --- Helpers ---

def future_date(days: int = 10) -> str:
    return (date.today() + timedelta(days=days)).isoformat()


def make_trip_response(**kwargs) -> TripResponse:
    status = kwargs.get("status", TripStatus.PENDING_APPROVAL)
    return TripResponse(
        id=kwargs.get("id", str(uuid.uuid4())),
        user_id="u-1",
        user_email="alice@corp.test",
        user_name="Alice",
        departure_location="Hanoi",
        destination=kwargs.get("destination", "Haiphong"),
        departure_date=date.today() + timedelta(days=10),
        departure_time=time(9, 0),
        return_date=date.today() + timedelta(days=10),
        return_time=time(18, 0),
        status=status,
        stored_status=kwargs.get("stored_status", status),
        manager_email="boss@corp.test",
        is_urgent=kwargs.get("is_urgent", False),
        auto_approved=False,
        data_type="raw",
        submitted_at=datetime.now(),
    )


def result(outcome=Outcome.OK, message="ok", **kwargs) -> TripActionResult:
    return TripActionResult(outcome=outcome, message=message, trip=make_trip_response(**kwargs))


def submit_payload(**trip):
    body = {
        "departure_location": "Hanoi",
        "destination": "Haiphong",
        "departure_date": future_date(),
        "departure_time": "09:00",
        "return_date": future_date(),
        "return_time": "18:00",
    }
    body.update(trip)
    return {"submitter": {"user_id": "u-1", "email": "alice@corp.test", "name": "Alice"}, "trip": body}


ADMIN = {"email": "fleet@corp.test", "role": "admin"}


# ============================================================
# POST /api/v1/trips
# ============================================================

def test_submit_trip_succes(client):
    """Soumission valide → 201 avec le trajet en attente."""
    with patch("tripshare.routers.trips.approval_service.submit_trip") as mock:
        mock.return_value = result()

        response = client.post("/api/v1/trips", json=submit_payload())

    assert response.status_code == 201
    body = response.json()
    assert body["outcome"] == "ok"
    assert body["trip"]["status"] == "pending_approval"
    submitter = mock.call_args[0][2]
    assert submitter.email == "alice@corp.test"


def test_submit_trip_retour_avant_depart(client):
    """Retour antérieur au départ → 422 avant tout appel au service."""
    with patch("tripshare.routers.trips.approval_service.submit_trip") as mock:
        response = client.post("/api/v1/trips", json=submit_payload(return_time="07:00"))

    assert response.status_code == 422
    mock.assert_not_called()


def test_submit_trip_destination_vide(client):
    response = client.post("/api/v1/trips", json=submit_payload(destination="   "))
    assert response.status_code == 422


def test_submit_trip_cc_invalide(client):
    response = client.post("/api/v1/trips", json=submit_payload(cc_emails=["pas-un-email"]))
    assert response.status_code == 422


def test_submit_trip_depart_passe(client):
    """Le service refuse un départ passé → 422 avec le détail typé."""
    with patch("tripshare.routers.trips.approval_service.submit_trip") as mock:
        mock.return_value = TripActionResult(
            outcome=Outcome.VALIDATION_ERROR, message="Le départ doit être dans le futur.",
        )

        response = client.post("/api/v1/trips", json=submit_payload())

    assert response.status_code == 422
    assert response.json()["detail"]["outcome"] == "validation_error"


# ============================================================
# GET /api/v1/trips
# ============================================================

def test_list_trips(client):
    with patch("tripshare.routers.trips.trip_service.list_trips") as mock:
        mock.return_value = [make_trip_response(), make_trip_response(status=TripStatus.APPROVED)]

        response = client.get("/api/v1/trips?user_id=u-1&status=approved")

    assert response.status_code == 200
    assert len(response.json()) == 2
    assert mock.call_args[1] == {"user_id": "u-1", "status": TripStatus.APPROVED}


def test_list_trips_statut_inconnu(client):
    response = client.get("/api/v1/trips?status=draft")
    assert response.status_code == 422


def test_get_trip_expire_derive(client):
    """Le statut effectif peut différer du statut persisté."""
    with patch("tripshare.routers.trips.trip_service.get_trip") as mock:
        mock.return_value = make_trip_response(
            status=TripStatus.EXPIRED, stored_status=TripStatus.PENDING_APPROVAL,
        )

        response = client.get("/api/v1/trips/t-1")

    assert response.status_code == 200
    assert response.json()["status"] == "expired"
    assert response.json()["stored_status"] == "pending_approval"


def test_get_trip_introuvable(client):
    with patch("tripshare.routers.trips.trip_service.get_trip", return_value=None):
        response = client.get("/api/v1/trips/inconnu")

    assert response.status_code == 404


def test_get_trip_audit(client):
    ledger = MagicMock()
    ledger.entries_for.return_value = []
    app.dependency_overrides[get_audit_ledger] = lambda: ledger

    response = client.get("/api/v1/trips/t-1/audit")

    assert response.status_code == 200
    assert response.json() == []
    ledger.entries_for.assert_called_once_with("t-1")


# ============================================================
# Actions sur un trajet
# ============================================================

def test_cancel_trip(client):
    with patch("tripshare.routers.trips.approval_service.cancel_trip") as mock:
        mock.return_value = result(status=TripStatus.CANCELLED)

        response = client.post("/api/v1/trips/t-1/cancel", json={
            "actor": {"email": "alice@corp.test"}, "reason": "Réunion annulée",
        })

    assert response.status_code == 200
    assert response.json()["trip"]["status"] == "cancelled"
    assert mock.call_args[0][3] == "Réunion annulée"


def test_cancel_trip_transition_illegale(client):
    """Trajet déjà refusé → 409."""
    with patch("tripshare.routers.trips.approval_service.cancel_trip") as mock:
        mock.return_value = TripActionResult(outcome=Outcome.ILLEGAL_TRANSITION, message="Transition refusée.")

        response = client.post("/api/v1/trips/t-1/cancel", json={"actor": {"email": "alice@corp.test"}})

    assert response.status_code == 409
    assert response.json()["detail"]["outcome"] == "illegal_transition"


def test_reissue_link_expire(client):
    """Demande expirée → 410."""
    with patch("tripshare.routers.trips.approval_service.reissue_approval_link") as mock:
        mock.return_value = TripActionResult(outcome=Outcome.EXPIRED, message="Demande expirée.")

        response = client.post("/api/v1/trips/t-1/reissue-link", json=ADMIN)

    assert response.status_code == 410


def test_assign_vehicle(client):
    with patch("tripshare.routers.trips.vehicle_service.assign_vehicle") as mock:
        mock.return_value = result(status=TripStatus.APPROVED)

        response = client.post("/api/v1/trips/t-1/vehicle", json={
            "vehicle_id": "v-1", "actor": ADMIN, "notes": "Chauffeur Minh",
        })

    assert response.status_code == 200
    args = mock.call_args[0]
    assert args[1:3] == ("t-1", "v-1")
    assert args[4] == "Chauffeur Minh"


def test_assign_vehicle_introuvable(client):
    with patch("tripshare.routers.trips.vehicle_service.assign_vehicle") as mock:
        mock.return_value = TripActionResult(outcome=Outcome.NOT_FOUND, message="Véhicule introuvable.")

        response = client.post("/api/v1/trips/t-1/vehicle", json={"vehicle_id": "v-x", "actor": ADMIN})

    assert response.status_code == 404


def test_migrate_legacy_statuses(client):
    with patch("tripshare.routers.trips.status_migration.migrate_legacy_statuses") as mock:
        mock.return_value = MigrationReport(migrated={"draft": 2}, unknown={"en_cours": 1})

        response = client.post("/api/v1/trips/migrate-legacy-statuses")

    assert response.status_code == 200
    assert response.json() == {"migrated": {"draft": 2}, "unknown": {"en_cours": 1}}


# ============================================================
# Santé et véhicules
# ============================================================

def test_health(client):
    response = client.get("/api/health")

    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_vehicules_disponibles(client):
    vehicle = VehicleResponse(
        id="v-1", plate_number="30A-001", vehicle_type="car-4", capacity=4, driver_name=None, status="active",
    )
    with patch("tripshare.routers.vehicles.vehicle_service.list_available_vehicles") as mock:
        mock.return_value = [vehicle]

        response = client.get(f"/api/v1/vehicles/available?date={future_date()}&vehicle_type=car-4")

    assert response.status_code == 200
    assert response.json()[0]["plate_number"] == "30A-001"


def test_vehicules_disponibles_sans_date(client):
    response = client.get("/api/v1/vehicles/available")
    assert response.status_code == 422
