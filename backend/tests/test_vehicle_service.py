"""
Tests de l'affectation manuelle des véhicules et de l'annuaire des véhicules.
"""

from datetime import date, datetime, time

from tripshare.models.trip import Trip
from tripshare.models.trip_status import TripStatus
from tripshare.models.vehicle import Vehicle
from tripshare.schemas.audit import AuditAction
from tripshare.schemas.trip import ActorRef
from tripshare.schemas.workflow import Outcome
from tripshare.services.vehicle_service import assign_vehicle, list_available_vehicles

NOW = datetime(2026, 3, 2, 9, 0)
DAY = date(2026, 3, 10)
ADMIN = ActorRef(email="fleet@corp.test", name="Parc auto", role="admin")


# --- Helpers ---

def add_vehicle(db, plate, vehicle_type="car-4", status="active"):
    vehicle = Vehicle(plate_number=plate, vehicle_type=vehicle_type, capacity=4, status=status)
    db.add(vehicle)
    db.commit()
    return vehicle.id


def add_trip(db, status=TripStatus.APPROVED, group_id=None, day=DAY):
    trip = Trip(
        user_id="u-1",
        user_email="alice@corp.test",
        departure_location="Hanoi",
        destination="Haiphong",
        departure_date=day,
        departure_time=time(9, 0),
        return_date=day,
        return_time=time(18, 0),
        status=status.value,
        manager_approval_status="approved",
        submitted_at=NOW,
        data_type="raw",
        optimized_group_id=group_id,
    )
    db.add(trip)
    db.commit()
    return trip.id


# ============================================================
# Véhicules disponibles
# ============================================================

def test_liste_exclut_maintenance_et_vehicules_pris(db):
    free = add_vehicle(db, "30A-001")
    busy = add_vehicle(db, "30A-002")
    add_vehicle(db, "30A-003", status="maintenance")
    trip_id = add_trip(db)
    db.get(Trip, trip_id).assigned_vehicle_id = busy
    db.commit()

    available = list_available_vehicles(db, DAY)

    assert [v.id for v in available] == [free]


def test_vehicule_d_un_trajet_annule_redevient_disponible(db):
    vehicle_id = add_vehicle(db, "30A-001")
    trip_id = add_trip(db, status=TripStatus.CANCELLED)
    db.get(Trip, trip_id).assigned_vehicle_id = vehicle_id
    db.commit()

    assert [v.id for v in list_available_vehicles(db, DAY)] == [vehicle_id]


def test_filtre_par_type(db):
    add_vehicle(db, "30A-001", "car-4")
    van = add_vehicle(db, "30A-002", "van-16")

    assert [v.id for v in list_available_vehicles(db, DAY, "van-16")] == [van]


# ============================================================
# Affectation
# ============================================================

def test_affectation_d_un_trajet_approuve(db, ledger):
    vehicle_id = add_vehicle(db, "30A-001")
    trip_id = add_trip(db)

    result = assign_vehicle(db, trip_id, vehicle_id, ADMIN, "Chauffeur Minh", ledger=ledger, now=NOW)

    assert result.outcome == Outcome.OK
    assert result.trip.assigned_vehicle_id == vehicle_id
    trip = db.get(Trip, trip_id)
    assert trip.vehicle_assigned_by == "fleet@corp.test"
    assert trip.vehicle_assignment_notes == "Chauffeur Minh"
    entry = ledger.entries_for(trip_id)[0]
    assert entry.action == AuditAction.VEHICLE_ASSIGNED
    assert "30A-001" in entry.notes


def test_vehicule_deja_pris_refuse(db, ledger):
    vehicle_id = add_vehicle(db, "30A-001")
    first = add_trip(db)
    second = add_trip(db)
    assign_vehicle(db, first, vehicle_id, ADMIN, ledger=ledger, now=NOW)

    result = assign_vehicle(db, second, vehicle_id, ADMIN, ledger=ledger, now=NOW)

    assert result.outcome == Outcome.VALIDATION_ERROR
    assert db.get(Trip, second).assigned_vehicle_id is None


def test_meme_vehicule_pour_un_groupe_optimise(db, ledger):
    """Les membres d'un même groupe partagent le véhicule."""
    vehicle_id = add_vehicle(db, "30A-001", "car-7")
    first = add_trip(db, status=TripStatus.OPTIMIZED, group_id="g-1")
    second = add_trip(db, status=TripStatus.OPTIMIZED, group_id="g-1")

    assign_vehicle(db, first, vehicle_id, ADMIN, ledger=ledger, now=NOW)
    result = assign_vehicle(db, second, vehicle_id, ADMIN, ledger=ledger, now=NOW)

    assert result.outcome == Outcome.OK


def test_trajet_en_attente_refuse(db, ledger):
    vehicle_id = add_vehicle(db, "30A-001")
    trip_id = add_trip(db, status=TripStatus.PENDING_APPROVAL)

    result = assign_vehicle(db, trip_id, vehicle_id, ADMIN, ledger=ledger, now=NOW)

    assert result.outcome == Outcome.ILLEGAL_TRANSITION


def test_affectation_reservee_aux_admins(db, ledger):
    vehicle_id = add_vehicle(db, "30A-001")
    trip_id = add_trip(db)

    result = assign_vehicle(db, trip_id, vehicle_id, ActorRef(email="alice@corp.test"), ledger=ledger, now=NOW)

    assert result.outcome == Outcome.VALIDATION_ERROR


def test_vehicule_introuvable(db, ledger):
    trip_id = add_trip(db)

    result = assign_vehicle(db, trip_id, "inconnu", ADMIN, ledger=ledger, now=NOW)

    assert result.outcome == Outcome.NOT_FOUND
