"""
Tests — card ordering for dashboards (pure functions, no database).
"""

from datetime import datetime, timedelta, timezone

import pytest

from ekanban.models.status_chain import ActorRole
from ekanban.services.card_ordering import CardView, compare, sort_cards

T0 = datetime(2026, 1, 1, tzinfo=timezone.utc)


def _view(kanban_id, role, minutes, **kw):
    fields = dict(
        kanban_id=kanban_id,
        kanban_chain_id=1,
        product_id="P-1",
        product_name="Bolt",
        container_type="Box",
        quantity=10,
        status_id=1,
        status_name="Draft",
        status_color="#fff",
        actor_role=role,
        last_updated=T0 + timedelta(minutes=minutes),
        supplier_name="Supplier",
        customer_name="Customer",
    )
    fields.update(kw)
    return CardView(**fields)


class TestSortCards:
    def test_viewer_role_first_regardless_of_time(self):
        supplier_card = _view(1, ActorRole.SUPPLIER, 10)
        customer_card = _view(2, ActorRole.CUSTOMER, 5)
        ordered = sort_cards([supplier_card, customer_card], ActorRole.CUSTOMER)
        assert [c.kanban_id for c in ordered] == [2, 1]

        newer_customer = _view(3, ActorRole.CUSTOMER, 50)
        ordered = sort_cards([supplier_card, newer_customer], ActorRole.CUSTOMER)
        assert [c.kanban_id for c in ordered] == [3, 1]

    def test_oldest_first_within_tier(self):
        later = _view(1, ActorRole.CUSTOMER, 8)
        earlier = _view(2, ActorRole.CUSTOMER, 5)
        assert [c.kanban_id for c in sort_cards([later, earlier], "customer")] == [2, 1]

    def test_ties_keep_input_order(self):
        cards = [_view(i, ActorRole.SUPPLIER, 0) for i in (5, 3, 9)]
        assert [c.kanban_id for c in sort_cards(cards, ActorRole.SUPPLIER)] == [5, 3, 9]

    def test_supplier_viewer(self):
        cards = [
            _view(1, ActorRole.CUSTOMER, 1),
            _view(2, ActorRole.SUPPLIER, 9),
            _view(3, ActorRole.SUPPLIER, 2),
        ]
        assert [c.kanban_id for c in sort_cards(cards, 1)] == [3, 2, 1]

    def test_naive_timestamps_are_utc(self):
        naive = _view(1, ActorRole.CUSTOMER, 0, last_updated=datetime(2026, 1, 1, 0, 30))
        aware = _view(2, ActorRole.CUSTOMER, 10)
        assert [c.kanban_id for c in sort_cards([naive, aware], ActorRole.CUSTOMER)] == [2, 1]

    def test_input_not_modified(self):
        cards = [_view(1, ActorRole.SUPPLIER, 5), _view(2, ActorRole.CUSTOMER, 1)]
        sort_cards(cards, ActorRole.CUSTOMER)
        assert [c.kanban_id for c in cards] == [1, 2]

    def test_invalid_viewer_role(self):
        with pytest.raises(ValueError):
            sort_cards([], "auditor")


class TestCompare:
    def test_three_way(self):
        a = _view(1, ActorRole.CUSTOMER, 5)
        b = _view(2, ActorRole.SUPPLIER, 1)
        assert compare(a, b, ActorRole.CUSTOMER) == -1
        assert compare(b, a, ActorRole.CUSTOMER) == 1
        assert compare(a, a, ActorRole.CUSTOMER) == 0


class TestWireFormat:
    def test_to_dict_field_names(self):
        wire = _view(7, ActorRole.SUPPLIER, 0).to_dict()
        assert wire["kanban_id"] == 7
        assert wire["tipo_contenitore"] == "Box"
        assert wire["customer_supplier"] == 1
        assert wire["status_current"] == 1
        assert wire["data_aggiornamento"] == T0.isoformat()
        assert {"product_name", "status_name", "status_color", "quantity",
                "supplier_name", "customer_name"} <= set(wire)
