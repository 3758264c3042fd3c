# Overview: Pytest coverage for the Flask CLI command groups.

from datetime import datetime

from marketplace.models import CatalogShareLink, Role, ROLE_NAMES
from conftest import sign_in


def test_system_init_seeds_roles(app, db_session):
    result = app.test_cli_runner().invoke(args=["system", "init"])

    assert result.exit_code == 0, result.output
    assert {r.name for r in db_session.query(Role).all()} == set(ROLE_NAMES)


def test_set_role_elevates_user(app, db_session):
    actor = sign_in("user_ana", "ana@example.com", "Ana")

    result = app.test_cli_runner().invoke(args=["users", "set-role", "ANA@example.com", "root"])

    assert result.exit_code == 0, result.output
    db_session.expire_all()
    assert actor.user.role_name == "root"


def test_set_role_unknown_user(app, db_session):
    result = app.test_cli_runner().invoke(args=["users", "set-role", "ghost@example.com", "root"])
    assert result.exit_code != 0
    assert "No user with email" in result.output


def test_users_list(app, db_session):
    sign_in("user_ana", "ana@example.com", "Ana", phone="5512345678")

    result = app.test_cli_runner().invoke(args=["users", "list"])

    assert "ana@example.com" in result.output
    assert "5512345678" in result.output


def test_cleanup_share_links(app, vendor_a, db_session):
    db_session.add(CatalogShareLink(
        vendor_id=vendor_a.profile.id,
        slug="tienda-ana-2020-w01",
        week_label="2020-W01",
        expires_at=datetime(2020, 1, 5, 23, 59, 59),
    ))
    db_session.commit()
    runner = app.test_cli_runner()

    dry = runner.invoke(args=["maintenance", "cleanup-share-links", "--dry-run"])
    assert "1 expired" in dry.output
    assert db_session.query(CatalogShareLink).count() == 1

    real = runner.invoke(args=["maintenance", "cleanup-share-links"])
    assert real.exit_code == 0, real.output
    assert db_session.query(CatalogShareLink).count() == 0
