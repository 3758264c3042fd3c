# Overview: Pytest coverage for weekly catalog share links and the public catalog reads.

"""
Catalog Share Tests

Covers:
1. One link per vendor per ISO week (idempotent issue)
2. Slug collisions with other vendors get a random suffix, bounded attempts
3. Public resolution: published products only, expired links are 410
4. Cleanup of expired links
"""

from datetime import datetime, timedelta

import pytest

from marketplace.models import CatalogShareLink
from marketplace.services import share_service
from marketplace.time_utils import utcnow, week_label, end_of_week
from marketplace.validation import ConflictError
from conftest import make_product, TEST_APP_URL

FIXED_NOW = datetime(2026, 10, 21, 15, 30)  # Wednesday of 2026-W43


class TestIssueShareLink:

    def test_issue_is_idempotent_within_the_week(self, client, vendor_a, db_session):
        first = client.post('/api/catalog/share', headers=vendor_a.headers)
        second = client.post('/api/catalog/share', headers=vendor_a.headers)

        assert first.status_code == 201
        assert second.status_code == 200
        assert first.json["slug"] == second.json["slug"]
        assert db_session.query(CatalogShareLink).count() == 1

    def test_slug_url_and_expiry(self, client, vendor_a):
        response = client.post('/api/catalog/share', headers=vendor_a.headers)

        label = week_label(utcnow())
        assert response.json["slug"] == f"tienda-ana-{label}".lower()
        assert response.json["week_label"] == label
        assert response.json["url"] == f"{TEST_APP_URL}/v/tienda-ana/share/{response.json['slug']}"

    def test_expires_at_end_of_monday_start_week(self, vendor_a):
        link, created = share_service.issue_share_link(vendor_a.profile, now=FIXED_NOW)

        assert created
        assert link.week_label == "2026-W43"
        assert link.slug == "tienda-ana-2026-w43"
        assert link.expires_at.replace(tzinfo=None) == datetime(2026, 10, 25, 23, 59, 59, 999999)

    def test_new_week_issues_new_link(self, vendor_a, db_session):
        this_week, _ = share_service.issue_share_link(vendor_a.profile, now=FIXED_NOW)
        next_week, created = share_service.issue_share_link(vendor_a.profile, now=FIXED_NOW + timedelta(days=7))

        assert created
        assert next_week.slug == "tienda-ana-2026-w44"
        assert this_week.id != next_week.id

    def test_collision_with_other_vendor_appends_suffix(self, vendor_a, vendor_b, db_session):
        db_session.add(CatalogShareLink(
            vendor_id=vendor_b.profile.id,
            slug="tienda-ana-2026-w43",
            week_label="2026-W43",
            expires_at=end_of_week(FIXED_NOW),
        ))
        db_session.commit()

        link, created = share_service.issue_share_link(vendor_a.profile, now=FIXED_NOW)

        assert created
        assert link.vendor_id == vendor_a.profile.id
        assert link.slug.startswith("tienda-ana-2026-w43-")
        assert len(link.slug) == len("tienda-ana-2026-w43-") + 4

    def test_collision_with_own_link_reuses_it(self, vendor_a, db_session):
        stale = CatalogShareLink(
            vendor_id=vendor_a.profile.id,
            slug="tienda-ana-2026-w43",
            week_label="legacy",
            expires_at=datetime(2026, 1, 1),
        )
        db_session.add(stale)
        db_session.commit()

        link, created = share_service.issue_share_link(vendor_a.profile, now=FIXED_NOW)

        assert not created
        assert link.id == stale.id
        assert link.week_label == "2026-W43"
        assert db_session.query(CatalogShareLink).count() == 1

    def test_exhausted_attempts_conflict(self, vendor_a, vendor_b, db_session, monkeypatch):
        monkeypatch.setattr(share_service, "random_suffix", lambda length: "zzzz")
        for slug in ("tienda-ana-2026-w43", "tienda-ana-2026-w43-zzzz"):
            db_session.add(CatalogShareLink(
                vendor_id=vendor_b.profile.id,
                slug=slug,
                week_label="2026-W43",
                expires_at=end_of_week(FIXED_NOW),
            ))
        db_session.commit()

        with pytest.raises(ConflictError):
            share_service.issue_share_link(vendor_a.profile, now=FIXED_NOW)

    def test_requires_authentication(self, client, db_session):
        response = client.post('/api/catalog/share')
        assert response.status_code == 401


class TestResolveShareLink:

    def test_resolves_published_products_in_stock_order(self, client, vendor_a, vendor_b):
        make_product(vendor_a, name="Few Left", stock=1)
        make_product(vendor_a, name="Plenty", stock=9)
        make_product(vendor_a, name="Hidden Draft", status="draft")
        make_product(vendor_b, name="Other Vendor")
        slug = client.post('/api/catalog/share', headers=vendor_a.headers).json["slug"]

        response = client.get(f'/api/catalog/share/{slug}')

        assert response.status_code == 200
        assert response.json["vendor"]["slug"] == "tienda-ana"
        assert [p["name"] for p in response.json["items"]] == ["Plenty", "Few Left"]

    def test_expired_link_is_gone(self, client, vendor_a, db_session):
        db_session.add(CatalogShareLink(
            vendor_id=vendor_a.profile.id,
            slug="tienda-ana-2020-w01",
            week_label="2020-W01",
            expires_at=datetime(2020, 1, 5, 23, 59, 59),
        ))
        db_session.commit()

        response = client.get('/api/catalog/share/tienda-ana-2020-w01')

        assert response.status_code == 410

    def test_unknown_slug(self, client, db_session):
        assert client.get('/api/catalog/share/nope').status_code == 404

    def test_cleanup_expired_links(self, vendor_a, db_session):
        share_service.issue_share_link(vendor_a.profile, now=FIXED_NOW)
        share_service.issue_share_link(vendor_a.profile, now=FIXED_NOW + timedelta(days=7))
        after_first_week = datetime(2026, 10, 27)

        assert share_service.cleanup_expired_links(dry_run=True, now=after_first_week) == 1
        assert db_session.query(CatalogShareLink).count() == 2

        assert share_service.cleanup_expired_links(now=after_first_week) == 1
        assert [link.week_label for link in db_session.query(CatalogShareLink).all()] == ["2026-W44"]


class TestPublicCatalog:

    def test_home_listing_filters(self, client, vendor_a, category):
        make_product(vendor_a, name="Trail Shoes", category_id=category.id)
        make_product(vendor_a, name="Straw Hat")
        make_product(vendor_a, name="Draft Shoes", status="draft", category_id=category.id)

        by_category = client.get('/api/catalog/products?category=calzado')
        by_search = client.get('/api/catalog/products?q=hat')

        assert [p["name"] for p in by_category.json["items"]] == ["Trail Shoes"]
        assert [p["name"] for p in by_search.json["items"]] == ["Straw Hat"]
        assert by_search.json["items"][0]["vendor"]["slug"] == "tienda-ana"

    def test_product_detail_with_recommendations(self, client, vendor_a, vendor_b, category):
        main = make_product(vendor_a, name="Trail Shoes", category_id=category.id)
        make_product(vendor_b, name="Road Shoes", category_id=category.id)
        make_product(vendor_a, name="Straw Hat", brand_name="Sombreros")

        response = client.get(f'/api/catalog/products/{main.id}')

        assert response.status_code == 200
        assert response.json["product"]["name"] == "Trail Shoes"
        assert {p["name"] for p in response.json["similar"]} == {"Road Shoes"}
        assert [p["name"] for p in response.json["more_from_vendor"]] == ["Straw Hat"]

    def test_draft_detail_is_not_public(self, client, vendor_a):
        draft = make_product(vendor_a, status="draft")
        assert client.get(f'/api/catalog/products/{draft.id}').status_code == 404

    def test_best_sellers(self, client, vendor_a, db_session):
        slow = make_product(vendor_a, name="Slow Seller")
        fast = make_product(vendor_a, name="Fast Seller")
        fast.sales_count = 10
        slow.sales_count = 1
        db_session.commit()

        response = client.get('/api/catalog/best-sellers')

        assert [p["name"] for p in response.json["items"]] == ["Fast Seller", "Slow Seller"]
