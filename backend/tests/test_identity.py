# Overview: Pytest coverage for identity resolution, lazy provisioning and auth decorators.

"""
Identity / Session Tests

Covers:
1. Lazy user provisioning with the default vendor role
2. Email sync on later resolutions without touching the role
3. Invalid, expired and forged tokens resolve to anonymous
4. Fail-open on persistence errors
5. Vendor profile provisioning (display name fallbacks, slug suffixes)
6. 401 / 403 responses with redirect hints
"""

import jwt
import pytest
from sqlalchemy.exc import IntegrityError, OperationalError

from marketplace.models import Role, User, VendorProfile, ROLE_NAMES, ROLE_ROOT, ROLE_VENDOR
from marketplace.services import identity_service, user_service
from marketplace.services.concurrency import get_or_create_under_race
from marketplace.services.vendor_service import get_or_create_vendor_profile
from conftest import make_token, auth_headers, sign_in


class TestProvisioning:

    def test_first_resolution_creates_vendor_user(self, db_session):
        session_user = identity_service.get_session_user(make_token("sub_1", "Ana@Example.com", "Ana"))

        assert session_user is not None
        assert session_user.user.external_id == "sub_1"
        assert session_user.user.email == "ana@example.com"
        assert session_user.user.role_name == ROLE_VENDOR
        assert {r.name for r in db_session.query(Role).all()} == set(ROLE_NAMES)

    def test_second_resolution_syncs_email_only(self, db_session):
        first = identity_service.get_session_user(make_token("sub_1", "old@example.com"))
        user_service.set_role(first.user, ROLE_ROOT)

        second = identity_service.get_session_user(make_token("sub_1", "new@example.com"))

        assert second.user.id == first.user.id
        assert second.user.email == "new@example.com"
        assert second.user.role_name == ROLE_ROOT
        assert db_session.query(User).count() == 1

    def test_missing_token_is_anonymous(self, db_session):
        assert identity_service.get_session_user(None) is None

    def test_expired_token_is_anonymous(self, db_session):
        token = make_token("sub_1", "a@example.com", expires_in=-60)
        assert identity_service.get_session_user(token) is None
        assert db_session.query(User).count() == 0

    def test_forged_token_is_anonymous(self, db_session):
        token = jwt.encode({"sub": "sub_1", "email": "a@example.com"}, "another-key-entirely-0123456789abc", algorithm="HS256")
        assert identity_service.get_session_user(token) is None

    def test_token_without_subject_is_rejected(self, db_session):
        token = jwt.encode({"email": "a@example.com"}, "test-identity-signing-key-0123456789abcdef", algorithm="HS256")
        with pytest.raises(identity_service.IdentityError):
            identity_service.decode_identity_token(token)

    def test_persistence_failure_fails_open(self, db_session, monkeypatch):
        def boom(identity):
            raise OperationalError("INSERT INTO users", {}, Exception("database is locked"))

        monkeypatch.setattr(identity_service, "provision_user", boom)

        assert identity_service.get_session_user(make_token("sub_1", "a@example.com")) is None


class TestGetOrCreateUnderRace:

    def test_conflict_returns_the_winner(self, db_session):
        winner = object()
        lookups = []

        def lookup():
            lookups.append(1)
            return None if len(lookups) == 1 else winner

        def create():
            raise IntegrityError("INSERT", {}, Exception("UNIQUE constraint failed"))

        assert get_or_create_under_race(lookup, create) is winner
        assert len(lookups) == 2

    def test_conflict_without_winner_propagates(self, db_session):
        def create():
            raise IntegrityError("INSERT", {}, Exception("UNIQUE constraint failed"))

        with pytest.raises(IntegrityError):
            get_or_create_under_race(lambda: None, create)

    def test_roles_seed_is_idempotent(self, db_session):
        identity_service.ensure_roles()
        identity_service.ensure_roles()
        assert db_session.query(Role).count() == len(ROLE_NAMES)


class TestVendorProvisioning:

    def test_profile_created_once(self, db_session):
        session_user = identity_service.get_session_user(make_token("sub_1", "ana@example.com", "Tienda Ana"))

        first = get_or_create_vendor_profile(session_user)
        second = get_or_create_vendor_profile(session_user)

        assert first.id == second.id
        assert first.slug == "tienda-ana"
        assert first.whatsapp == ""
        assert db_session.query(VendorProfile).count() == 1

    def test_display_name_falls_back_to_email_local_part(self, db_session):
        session_user = identity_service.get_session_user(make_token("sub_1", "maria.lopez@example.com"))
        profile = get_or_create_vendor_profile(session_user)
        assert profile.display_name == "maria.lopez"
        assert profile.slug == "maria-lopez"

    def test_unsluggable_name_gets_random_slug(self, db_session):
        session_user = identity_service.get_session_user(make_token("sub_1", "x@example.com", "!!!"))
        profile = get_or_create_vendor_profile(session_user)
        assert profile.slug.startswith("vendedor-")
        assert len(profile.slug) == len("vendedor-") + 5

    def test_slug_collision_gets_numeric_suffix(self, db_session):
        first = identity_service.get_session_user(make_token("sub_1", "a@example.com", "Ana Shop"))
        second = identity_service.get_session_user(make_token("sub_2", "b@example.com", "Ana Shop"))

        assert get_or_create_vendor_profile(first).slug == "ana-shop"
        assert get_or_create_vendor_profile(second).slug == "ana-shop-2"

    def test_same_name_vendors_keep_getting_free_slugs(self, client, db_session):
        slugs = []
        for n in range(4):
            token = make_token(f"sub_{n}", f"ana{n}@example.com", "Ana")
            response = client.get('/api/vendors/me', headers=auth_headers(token))
            assert response.status_code == 200
            slugs.append(response.json["slug"])

        assert slugs == ["ana", "ana-2", "ana-3", "ana-4"]


class TestAuthRoutes:

    def test_me_requires_authentication(self, client, db_session):
        response = client.get('/api/user/me')
        assert response.status_code == 401
        assert response.json["redirect"] == "/sign-in"

    def test_me_with_bearer_token(self, client, db_session):
        token = make_token("sub_1", "ana@example.com", "Ana")
        response = client.get('/api/user/me', headers=auth_headers(token))

        assert response.status_code == 200
        assert response.json["user"]["email"] == "ana@example.com"
        assert response.json["user"]["role"] == ROLE_VENDOR
        assert response.json["vendor_profile"] is None

    def test_me_with_session_cookie(self, client, db_session):
        token = make_token("sub_1", "ana@example.com", "Ana")
        client.set_cookie("__session", token)
        response = client.get('/api/user/me')
        assert response.status_code == 200

    def test_vendor_tooling_requires_phone(self, client, buyer):
        response = client.get('/api/dashboard/stats', headers=buyer.headers)
        assert response.status_code == 403
        assert response.json["redirect"] == "/complete-profile"

    def test_update_phone_normalizes_digits(self, client, buyer):
        response = client.post('/api/user/phone', json={"phone": "+52 (55) 1234-5678"}, headers=buyer.headers)

        assert response.status_code == 200
        assert response.json["user"]["phone"] == "525512345678"

        # Phone captured: dashboard access is now allowed
        assert client.get('/api/dashboard/stats', headers=buyer.headers).status_code == 200

    def test_update_phone_rejects_short_numbers(self, client, buyer):
        response = client.post('/api/user/phone', json={"phone": "12-345"}, headers=buyer.headers)
        assert response.status_code == 400
        assert response.json["field"] == "phone"

    def test_update_phone_requires_value(self, client, buyer):
        response = client.post('/api/user/phone', json={}, headers=buyer.headers)
        assert response.status_code == 400

    def test_requests_are_resolved_independently(self, client, db_session):
        ana = sign_in("sub_1", "ana@example.com", "Ana")
        beto = sign_in("sub_2", "beto@example.com", "Beto")

        assert client.get('/api/user/me', headers=ana.headers).json["user"]["email"] == "ana@example.com"
        assert client.get('/api/user/me', headers=beto.headers).json["user"]["email"] == "beto@example.com"
        assert client.get('/api/user/me').status_code == 401
