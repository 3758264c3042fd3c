"""
Pytest fixtures for marketplace backend tests.

Provides the app on in-memory SQLite, a per-test data wipe, identity tokens
minted the way the identity provider would, signed-in actors (vendors, root,
buyer) and a recording stub for storage deletes.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

import jwt
import pytest

from marketplace import create_app
from marketplace.extensions import db, storage
from marketplace.models import User, VendorProfile, Category, ROLE_ROOT
from marketplace.services import identity_service, products_service, user_service
from marketplace.services.storage_service import StorageError
from marketplace.services.vendor_service import get_or_create_vendor_profile

TEST_JWT_KEY = "test-identity-signing-key-0123456789abcdef"
TEST_APP_URL = "https://market.test"


@pytest.fixture(scope='session')
def app(tmp_path_factory):
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'AUTH_JWT_KEY': TEST_JWT_KEY,
        'AUTH_JWT_ALGORITHMS': ['HS256'],
        'AUTH_JWT_AUDIENCE': None,
        'AUTH_JWT_ISSUER': None,
        'AWS_S3_BUCKET_NAME': None,
        'AWS_S3_REGION': None,
        'AWS_ACCESS_KEY_ID': None,
        'AWS_SECRET_ACCESS_KEY': None,
        'AWS_CDN_URL': None,
        'UPLOADS_DIR': str(tmp_path_factory.mktemp('uploads')),
        'APP_URL': TEST_APP_URL,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()
        db.session.expunge_all()

        yield db.session

        # Cleanup after test
        db.session.rollback()


def make_token(sub: str, email: str, name: str | None = None, *, expires_in: int = 3600, **claims) -> str:
    """Identity token as the provider would mint it."""
    payload = {
        'sub': sub,
        'email': email,
        'exp': datetime.now(timezone.utc) + timedelta(seconds=expires_in),
        **claims,
    }
    if name is not None:
        payload['name'] = name
    return jwt.encode(payload, TEST_JWT_KEY, algorithm='HS256')


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}


@dataclass
class Actor:
    user: User
    headers: dict
    profile: VendorProfile | None = None


def sign_in(sub: str, email: str, name: str | None = None, *, phone: str | None = None) -> Actor:
    """Resolve a token once (lazy provisioning) and optionally capture a phone."""
    token = make_token(sub, email, name)
    session_user = identity_service.get_session_user(token)
    assert session_user is not None
    if phone:
        user_service.update_phone(session_user.user, phone)
    return Actor(user=session_user.user, headers=auth_headers(token))


def sign_in_vendor(sub: str, email: str, name: str, *, whatsapp: str = "5215512345678") -> Actor:
    token = make_token(sub, email, name)
    actor = sign_in(sub, email, name, phone="5512345678")
    profile = get_or_create_vendor_profile(identity_service.get_session_user(token))
    profile.whatsapp = whatsapp
    db.session.commit()
    actor.profile = profile
    return actor


@pytest.fixture(scope='function')
def vendor_a(db_session):
    """Vendor "Tienda Ana" with a phone and a WhatsApp number."""
    return sign_in_vendor("user_ana", "ana@example.com", "Tienda Ana")


@pytest.fixture(scope='function')
def vendor_b(db_session):
    """Second, unrelated vendor."""
    return sign_in_vendor("user_beto", "beto@example.com", "Beto Store")


@pytest.fixture(scope='function')
def root(db_session):
    """Root administrator (elevated manually, as the CLI does)."""
    actor = sign_in("user_root", "root@example.com", "Root", phone="5599999999")
    user_service.set_role(actor.user, ROLE_ROOT)
    return actor


@pytest.fixture(scope='function')
def buyer(db_session):
    """Signed-in user without a phone and without a vendor profile."""
    return sign_in("user_buyer", "buyer@example.com", "Compradora")


@pytest.fixture(scope='function')
def category(db_session):
    category = Category(name="Calzado", slug="calzado")
    db_session.add(category)
    db_session.commit()
    return category


def make_product(vendor: Actor, *, images=None, variants=None, **fields):
    """Create a product through the service layer with sensible defaults."""
    patch = {
        'name': "Red Shoes",
        'brand_name': "Nike",
        'regular_price_cents': 10000,
        'stock': 5,
        **fields,
    }
    return products_service.create_product(
        vendor=vendor.profile,
        patch=patch,
        images=images or [],
        variants=variants or [],
    )


class RecordingDeletes:
    """Replaces ObjectStorage.delete; records every attempted key."""

    def __init__(self):
        self.attempted = []
        self.failing = set()

    def __call__(self, key):
        self.attempted.append(key)
        if key in self.failing:
            raise StorageError(f"Could not delete {key}")


@pytest.fixture(scope='function')
def storage_deletes(monkeypatch):
    recorder = RecordingDeletes()
    monkeypatch.setattr(storage, "delete", recorder)
    return recorder
