"""
Pytest configuration and fixtures
"""
import os
import sys
import threading
import time
from datetime import datetime, timedelta
from pathlib import Path
from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient

# Add src to path
src_path = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_path))

# Set test environment variables before importing
os.environ["ENV"] = "test"
os.environ["SECRET_KEY"] = "test-secret-key-for-reminder-tests-only-min-32-chars"
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["REDIS_URL"] = "redis://localhost:6379/15"
os.environ["LOG_LEVEL"] = "WARNING"  # Reduce log noise in tests
os.environ["DISABLE_SCHEDULER"] = "true"
os.environ.pop("ENABLE_SCHEDULER", None)

# Import after setting env vars
from contract_reminders.app import app
from contract_reminders.auth import create_access_token
from contract_reminders.coordination import CoordinationContext
from contract_reminders.db import Base, Contract, Organization, SessionLocal, Tenant, get_db
from contract_reminders.db.engine import engine
from contract_reminders.dependencies import get_coordination
from contract_reminders.exceptions import QueueUnavailableError
from contract_reminders.services.reminder_queue import ReminderQueue

NOW = datetime(2026, 3, 1, 6, 0, 0)


class InMemoryRedis:
    """
    Thread-safe stand-in for the redis commands used by the leader lock
    and scheduler metrics (str responses, like decode_responses=True)
    """
    
    def __init__(self):
        self._data = {}
        self._expires = {}
        self._lock = threading.Lock()
    
    def _purge(self, key):
        expires_at = self._expires.get(key)
        if expires_at is not None and time.monotonic() >= expires_at:
            self._data.pop(key, None)
            self._expires.pop(key, None)
    
    def set(self, key, value, nx=False, px=None):
        with self._lock:
            self._purge(key)
            if nx and key in self._data:
                return None
            self._data[key] = str(value)
            if px:
                self._expires[key] = time.monotonic() + px / 1000
            else:
                self._expires.pop(key, None)
            return True
    
    def get(self, key):
        with self._lock:
            self._purge(key)
            return self._data.get(key)
    
    def delete(self, *keys):
        with self._lock:
            removed = 0
            for key in keys:
                self._purge(key)
                if self._data.pop(key, None) is not None:
                    removed += 1
                self._expires.pop(key, None)
            return removed
    
    def pexpire(self, key, milliseconds):
        with self._lock:
            self._purge(key)
            if key not in self._data:
                return False
            self._expires[key] = time.monotonic() + milliseconds / 1000
            return True
    
    def pttl(self, key):
        with self._lock:
            self._purge(key)
            if key not in self._data:
                return -2
            expires_at = self._expires.get(key)
            if expires_at is None:
                return -1
            return int((expires_at - time.monotonic()) * 1000)
    
    def close(self):
        pass


class FakeReminderQueue:
    """Records enqueued jobs instead of talking to RQ"""
    
    def __init__(self, fail: bool = False):
        self.fail = fail
        self.jobs = []
    
    def enqueue(self, reminder_id, delay=None, payload=None):
        if self.fail:
            raise QueueUnavailableError("Reminder queue unavailable: Connection refused")
        job = SimpleNamespace(id=ReminderQueue.job_id_for(reminder_id))
        self.jobs.append({
            "id": job.id,
            "reminder_id": reminder_id,
            "delay": delay,
            "payload": payload or {},
        })
        return job
    
    def job_counts(self):
        return {
            "waiting": sum(1 for job in self.jobs if not job["delay"]),
            "active": 0,
            "delayed": sum(1 for job in self.jobs if job["delay"]),
            "failed": 0,
            "completed": 0,
            "paused": 0,
        }


class FastWorkerQueue(FakeReminderQueue):
    """Delivers every job in its own session before enqueue returns, like an idle worker"""
    
    def __init__(self, email_provider):
        super().__init__()
        self.email_provider = email_provider
        self.results = []
    
    def enqueue(self, reminder_id, delay=None, payload=None):
        from contract_reminders.services.reminder_worker import ReminderDeliveryService
        
        job = super().enqueue(reminder_id, delay=delay, payload=payload)
        worker_session = SessionLocal()
        try:
            service = ReminderDeliveryService(worker_session, email_provider=self.email_provider)
            self.results.append(service.process(reminder_id))
        finally:
            worker_session.close()
        return job


class RecordingEmailProvider:
    """Email provider that records messages (optionally failing)"""
    
    name = "recording"
    
    def __init__(self, error: Exception = None):
        self.error = error
        self.sent = []
    
    def send(self, message):
        if self.error is not None:
            raise self.error
        self.sent.append(message)
        return {"provider": self.name, "messageId": f"<msg-{len(self.sent)}@test>", "accepted": [message.to]}
    
    def is_available(self):
        return True


@pytest.fixture(scope="function")
def db_session():
    """Fresh schema and session per test"""
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    
    yield session
    
    session.close()
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def fake_redis():
    return InMemoryRedis()


@pytest.fixture
def fake_queue():
    return FakeReminderQueue()


@pytest.fixture
def email_provider():
    return RecordingEmailProvider()


@pytest.fixture
def coordination(fake_redis, fake_queue):
    """Coordination context backed by in-memory doubles"""
    return CoordinationContext(redis_client=fake_redis, queue=fake_queue)


@pytest.fixture
def scheduler_enabled(monkeypatch):
    """Turn the global scheduler switch on for one test"""
    monkeypatch.setenv("DISABLE_SCHEDULER", "false")


@pytest.fixture
def organization(db_session):
    org = Organization(name="Acme Property")
    db_session.add(org)
    db_session.commit()
    db_session.refresh(org)
    return org


@pytest.fixture
def tenant(db_session, organization):
    tenant = Tenant(id="tenant-1", organization_id=organization.id, name="Jane Tenant", email="jane@example.com")
    db_session.add(tenant)
    db_session.commit()
    return tenant


@pytest.fixture
def make_contract(db_session, organization):
    """Factory for contracts expiring relative to NOW"""
    def _make_contract(expires_in: timedelta = timedelta(days=10), org=None, **kwargs):
        contract = Contract(
            organization_id=(org or organization).id,
            tenant_id=kwargs.pop("tenant_id", None),
            title=kwargs.pop("title", "Lease 12B"),
            parties=kwargs.pop("parties", [{"name": "Jane", "role": "tenant", "contact": "jane@example.com"}]),
            expiry_date=None if expires_in is None else NOW + expires_in,
            **kwargs,
        )
        db_session.add(contract)
        db_session.commit()
        db_session.refresh(contract)
        return contract
    return _make_contract


@pytest.fixture
def client(db_session, coordination):
    """Test client wired to the test session and coordination doubles"""
    def override_get_db():
        yield db_session
    
    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_coordination] = lambda: coordination
    
    yield TestClient(app)
    
    app.dependency_overrides.clear()


def make_auth_headers(user_id="user-1", organization_id=None, is_admin=False):
    token = create_access_token(data={"sub": user_id, "org_id": organization_id, "is_admin": is_admin})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def auth_headers(organization):
    """Headers for a regular member of the test organization"""
    return make_auth_headers(organization_id=organization.id)


@pytest.fixture
def admin_headers(organization):
    """Headers for an admin of the test organization"""
    return make_auth_headers(user_id="admin-1", organization_id=organization.id, is_admin=True)
