import base64
import os
from types import SimpleNamespace

# Settings are read at import time; give the app a throwaway environment.
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("SECRET_KEY", "test-secret-key-for-operator-tokens")
os.environ.setdefault("MERCHANT_NO", "M001")
os.environ.setdefault("EXPECTED_CURRENCY", "SAR")

import pytest
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import padding, rsa
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from handcart.db.session import Base, get_db
from handcart.main import app as fastapi_app
from handcart.models.payment import Payment  # noqa: F401
from handcart.models.rental_order import RentalOrder  # noqa: F401
from handcart.models.audit_log import AuditLog  # noqa: F401
from handcart.core.security import create_access_token

engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture(autouse=True)
def setup_db():
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db():
    session = TestingSessionLocal()
    yield session
    session.close()


@pytest.fixture
def session_factory():
    return TestingSessionLocal


@pytest.fixture
def worker_db(monkeypatch):
    """Point the worker jobs at the test database."""
    monkeypatch.setattr("handcart.tasks.worker_jobs.SessionLocal", TestingSessionLocal)


@pytest.fixture
def client(worker_db):
    def _get_db():
        session = TestingSessionLocal()
        try:
            yield session
        finally:
            session.close()

    fastapi_app.dependency_overrides[get_db] = _get_db

    with TestClient(fastapi_app) as c:
        yield c

    fastapi_app.dependency_overrides.clear()


@pytest.fixture
def ops_headers():
    return {"Authorization": f"Bearer {create_access_token('ops@handcart.test', 'ops')}"}


@pytest.fixture
def admin_headers():
    return {"Authorization": f"Bearer {create_access_token('admin@handcart.test', 'admin')}"}


def _keypair():
    key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    private_der = key.private_bytes(
        serialization.Encoding.DER,
        serialization.PrivateFormat.PKCS8,
        serialization.NoEncryption(),
    )
    public_der = key.public_key().public_bytes(
        serialization.Encoding.DER,
        serialization.PublicFormat.SubjectPublicKeyInfo,
    )

    def sign(message: bytes) -> str:
        return base64.b64encode(key.sign(message, padding.PKCS1v15(), hashes.SHA256())).decode("ascii")

    def verify(message: bytes, signature_b64: str) -> bool:
        try:
            key.public_key().verify(base64.b64decode(signature_b64), message, padding.PKCS1v15(), hashes.SHA256())
        except Exception:
            return False
        return True

    return SimpleNamespace(
        private_b64=base64.b64encode(private_der).decode("ascii"),
        public_b64=base64.b64encode(public_der).decode("ascii"),
        sign=sign,
        verify=verify,
    )


@pytest.fixture(scope="session")
def merchant_keys():
    """Our side: signs outbound vendor requests."""
    return _keypair()


@pytest.fixture(scope="session")
def vendor_keys():
    """Vendor side: signs return callbacks."""
    return _keypair()
