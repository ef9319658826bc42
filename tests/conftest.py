"""
Shared pytest fixtures for the Electronic Kanban Platform test suite.

Provides:
    - app: Flask application (session-scoped)
    - _setup_db: Database table creation/teardown (session-scoped)
    - session: Per-test DB cleanup w/ rollback + recreate (autouse)
    - client: Flask test client (function-scoped)
    - make_account / make_product / make_status: reference data factories
    - draft_shipped: two-step status chain (Draft→supplier, Shipped→customer)
    - agreement: customer, supplier and product ready for a kanban chain
"""

import pytest

from ekanban import create_app
from ekanban.models import db as _db
from ekanban.models.status_chain import ActorRole
from ekanban.services import reference_service, status_chain_service


# ── App & DB fixtures ────────────────────────────────────────────────────


@pytest.fixture(scope="session")
def app():
    """Create the Flask application once per test session."""
    application = create_app("testing")
    return application


@pytest.fixture(scope="session")
def _setup_db(app):
    """Create all tables at session start, drop at end."""
    with app.app_context():
        _db.create_all()
    yield
    with app.app_context():
        _db.drop_all()


@pytest.fixture(autouse=True)
def session(app, _setup_db):
    """Per-test: open app context, rollback after test, recreate tables."""
    with app.app_context():
        yield
        _db.session.rollback()
        _db.drop_all()
        _db.create_all()


@pytest.fixture()
def client(app):
    """Flask test client."""
    return app.test_client()


# ── Factories ────────────────────────────────────────────────────────────


@pytest.fixture()
def make_account():
    def _make(name="ACME S.p.A.", **kw):
        return reference_service.create_account({"name": name, **kw})
    return _make


@pytest.fixture()
def make_product():
    counter = {"n": 0}

    def _make(name="Bolt M8", product_id=None):
        counter["n"] += 1
        code = product_id or f"P-{1000 + counter['n']}"
        return reference_service.create_product({"product_id": code, "name": name})
    return _make


@pytest.fixture()
def make_status():
    def _make(name, color="#999999"):
        return reference_service.create_status({"name": name, "color": color})
    return _make


@pytest.fixture()
def make_status_chain(make_status):
    """Build a chain from [(status_name, role), ...]; orders are 1..N."""
    def _make(steps, name="Replenishment"):
        statuses = [make_status(step_name) for step_name, _ in steps]
        entries = [
            {"status_id": s["status_id"], "order": i, "actor_role": int(role)}
            for i, (s, (_, role)) in enumerate(zip(statuses, steps), start=1)
        ]
        chain = status_chain_service.create_chain(name, entries)
        chain["statuses"] = statuses
        return chain
    return _make


# ── Convenience fixtures ─────────────────────────────────────────────────


@pytest.fixture()
def draft_shipped(make_status_chain):
    """Status chain [(Draft, 1, SUPPLIER), (Shipped, 2, CUSTOMER)]."""
    chain = make_status_chain(
        [("Draft", ActorRole.SUPPLIER), ("Shipped", ActorRole.CUSTOMER)],
        name="Draft/Shipped",
    )
    draft, shipped = chain["statuses"]
    chain["draft_id"] = draft["status_id"]
    chain["shipped_id"] = shipped["status_id"]
    return chain


@pytest.fixture()
def agreement(make_account, make_product):
    """Customer, supplier and product for a kanban chain."""
    return {
        "customer": make_account("Customer Srl"),
        "supplier": make_account("Supplier SpA"),
        "product": make_product("Bolt M8"),
    }


@pytest.fixture()
def chain_args(agreement, draft_shipped):
    """Keyword arguments for kanban_chain_service.create_chain."""
    return {
        "customer_id": agreement["customer"]["id"],
        "supplier_id": agreement["supplier"]["id"],
        "product_id": agreement["product"]["product_id"],
        "status_chain_id": draft_shipped["id"],
        "lead_time_days": 5,
        "quantity": 100,
        "container_type": "Box",
    }
