"""
Configuration partagée pour tous les tests.

- Tests API : la dépendance get_db est remplacée par un MagicMock (aucune connexion réelle)
- Tests de service : base SQLite en mémoire recréée pour chaque test
"""

import os

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("SCHEDULER_ENABLED", "false")

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402
from unittest.mock import MagicMock  # noqa: E402

import tripshare.models  # noqa: E402,F401 : enregistre les modèles dans Base.metadata
from tripshare.database import Base, get_db  # noqa: E402
from tripshare.main import app  # noqa: E402
from tripshare.services.audit_service import SqlAuditLedger, get_audit_ledger  # noqa: E402
from tripshare.services.email_service import get_notifier  # noqa: E402

engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


class RecordingNotifier:
    """Notificateur factice : enregistre chaque envoi au lieu d'envoyer un email."""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.sent = []

    def send(self, category, recipients, template_data) -> bool:
        self.sent.append((category, list(recipients), template_data))
        return not self.fail

    def categories(self):
        return [category for category, _, _ in self.sent]

    def recipients_for(self, category):
        return [recipients for c, recipients, _ in self.sent if c == category]


@pytest.fixture
def db():
    """Session SQLite en mémoire, schéma recréé pour chaque test."""
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def ledger(db):
    """Journal d'audit réel, branché sur la base de test."""
    return SqlAuditLedger(session_factory=TestingSessionLocal)


class BrokenLedger:
    """Journal dont chaque écriture lève, comme un stockage d'audit indisponible."""

    def __init__(self):
        self.attempts = 0

    def append(self, entry):
        self.attempts += 1
        raise RuntimeError("stockage d'audit indisponible")


@pytest.fixture
def broken_ledger():
    return BrokenLedger()


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def failing_notifier():
    """Notificateur dont chaque envoi échoue."""
    return RecordingNotifier(fail=True)


@pytest.fixture
def client():
    """Client HTTP de test avec la BDD, le journal et le notificateur mockés."""
    mock_db = MagicMock()
    app.dependency_overrides[get_db] = lambda: mock_db
    app.dependency_overrides[get_audit_ledger] = lambda: MagicMock()
    app.dependency_overrides[get_notifier] = lambda: RecordingNotifier()
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()
