"""
Tests — KanbanChain Manager service.

Covers:
    - create: materialization at the first status, reference checks, validation
    - update: mutable fields + propagation, grow by delta, shrink refusal,
      immutable fields
    - delete: blocked with active cards, removes retired cards + history
    - active_card_count always equals the live count of active cards
"""

import pytest
from sqlalchemy.dialects import postgresql

from ekanban.core.exceptions import (
    CannotAutoShrinkError,
    ConflictError,
    NotFoundError,
    ValidationError,
)
from ekanban.models import db as _db
from ekanban.models.kanban import Kanban, KanbanChain, KanbanHistory
from ekanban.services import kanban_chain_service as kcs
from ekanban.services import kanban_lifecycle
from ekanban.services import status_chain_service as scs
from ekanban.services.helpers.queries import get_or_raise, locked_select


def _cards(chain_id, active=True):
    return (
        _db.session.query(Kanban)
        .filter(Kanban.kanban_chain_id == chain_id, Kanban.is_active.is_(active))
        .all()
    )


class TestCreate:
    def test_materializes_exactly_k_cards_at_first_status(self, chain_args, draft_shipped):
        chain = kcs.create_chain(**chain_args, initial_active_count=3)
        assert chain["active_card_count"] == 3

        cards = _cards(chain["id"])
        assert len(cards) == 3
        assert {c.current_status_id for c in cards} == {draft_shipped["draft_id"]}
        assert all(c.quantity == 100 and c.container_type == "Box" for c in cards)
        assert all(c.lead_time_days == 5 for c in cards)

    def test_first_status_is_lowest_order(self, chain_args, draft_shipped):
        scs.reorder_entry(draft_shipped["id"], draft_shipped["draft_id"], 9)
        chain = kcs.create_chain(**chain_args, initial_active_count=1)
        assert _cards(chain["id"])[0].current_status_id == draft_shipped["shipped_id"]

    def test_zero_cards(self, chain_args):
        chain = kcs.create_chain(**chain_args)
        assert chain["active_card_count"] == 0
        assert _cards(chain["id"]) == []

    def test_creation_is_recorded_in_history(self, chain_args, draft_shipped):
        chain = kcs.create_chain(**chain_args, initial_active_count=1)
        card = _cards(chain["id"])[0]
        rows = kanban_lifecycle.history(card.id)
        assert len(rows) == 1
        assert rows[0]["previous_status_id"] is None
        assert rows[0]["next_status_id"] == draft_shipped["draft_id"]

    def test_names_are_joined(self, chain_args):
        chain = kcs.create_chain(**chain_args)
        assert chain["customer_name"] == "Customer Srl"
        assert chain["supplier_name"] == "Supplier SpA"
        assert chain["product_name"] == "Bolt M8"

    @pytest.mark.parametrize("field", ["customer_id", "supplier_id", "status_chain_id"])
    def test_unknown_reference(self, chain_args, field):
        chain_args[field] = 4242
        with pytest.raises(NotFoundError):
            kcs.create_chain(**chain_args)

    def test_unknown_product(self, chain_args):
        chain_args["product_id"] = "NOPE"
        with pytest.raises(NotFoundError):
            kcs.create_chain(**chain_args)

    def test_missing_reference(self, chain_args):
        chain_args["customer_id"] = None
        with pytest.raises(ValidationError):
            kcs.create_chain(**chain_args)

    @pytest.mark.parametrize("field,value", [
        ("initial_active_count", -1),
        ("initial_active_count", 1.5),
        ("lead_time_days", -2),
        ("quantity", -0.5),
        ("quantity", "lots"),
    ])
    def test_negative_or_malformed_values(self, chain_args, field, value):
        chain_args[field] = value
        with pytest.raises(ValidationError):
            kcs.create_chain(**chain_args)

    def test_cards_need_an_entry(self, chain_args):
        empty = scs.create_chain("Empty")
        chain_args["status_chain_id"] = empty["id"]
        with pytest.raises(ValidationError):
            kcs.create_chain(**chain_args, initial_active_count=1)

    def test_no_cards_on_empty_chain_is_fine(self, chain_args):
        empty = scs.create_chain("Empty")
        chain_args["status_chain_id"] = empty["id"]
        assert kcs.create_chain(**chain_args)["active_card_count"] == 0


class TestUpdate:
    def test_grow_by_exact_delta(self, chain_args, draft_shipped):
        chain = kcs.create_chain(**chain_args, initial_active_count=2)
        updated = kcs.update_chain(chain["id"], {}, requested_active_count=5)
        assert updated["active_card_count"] == 5
        cards = _cards(chain["id"])
        assert len(cards) == 5
        assert {c.current_status_id for c in cards} == {draft_shipped["draft_id"]}

    def test_same_count_is_noop(self, chain_args):
        chain = kcs.create_chain(**chain_args, initial_active_count=2)
        assert kcs.update_chain(chain["id"], {}, requested_active_count=2)["active_card_count"] == 2
        assert len(_cards(chain["id"])) == 2

    def test_shrink_is_refused_and_nothing_applied(self, chain_args):
        chain = kcs.create_chain(**chain_args, initial_active_count=3)
        with pytest.raises(CannotAutoShrinkError) as exc:
            kcs.update_chain(chain["id"], {"quantity": 7}, requested_active_count=1)
        _db.session.rollback()

        assert exc.value.details == {"current_active": 3, "requested_active": 1}
        stored = _db.session.get(KanbanChain, chain["id"])
        assert stored.active_card_count == 3
        assert stored.quantity == 100
        assert len(_cards(chain["id"])) == 3

    def test_grow_on_empty_status_chain_leaves_session_clean(self, chain_args):
        empty = scs.create_chain("Empty")
        chain_args["status_chain_id"] = empty["id"]
        chain = kcs.create_chain(**chain_args)

        with pytest.raises(ValidationError):
            kcs.update_chain(chain["id"], {"quantity": 7}, requested_active_count=1)

        assert not _db.session.dirty
        assert not _db.session.new
        assert _db.session.get(KanbanChain, chain["id"]).quantity == 100

    def test_shrink_is_a_conflict(self):
        assert issubclass(CannotAutoShrinkError, ConflictError)

    def test_mutable_fields_propagate_to_active_cards(self, chain_args):
        chain = kcs.create_chain(**chain_args, initial_active_count=2)
        retired_id = _cards(chain["id"])[0].id
        kanban_lifecycle.retire(retired_id)

        updated = kcs.update_chain(
            chain["id"], {"quantity": 42, "container_type": "Pallet", "lead_time_days": 9},
        )
        assert updated["quantity"] == 42
        assert updated["container_type"] == "Pallet"
        assert updated["lead_time_days"] == 9

        active = _cards(chain["id"])
        assert [(c.quantity, c.container_type, c.lead_time_days) for c in active] == [(42, "Pallet", 9)]
        retired = _db.session.get(Kanban, retired_id)
        assert (retired.quantity, retired.container_type) == (100, "Box")

    def test_grown_cards_use_new_fields(self, chain_args):
        chain = kcs.create_chain(**chain_args, initial_active_count=1)
        kcs.update_chain(chain["id"], {"quantity": 12}, requested_active_count=2)
        assert {c.quantity for c in _cards(chain["id"])} == {12}

    def test_immutable_field_change_rejected(self, chain_args, make_account):
        other = make_account("Other")
        chain = kcs.create_chain(**chain_args)
        with pytest.raises(ValidationError):
            kcs.update_chain(chain["id"], {"customer_id": other["id"]})

    def test_immutable_field_with_same_value_ignored(self, chain_args):
        chain = kcs.create_chain(**chain_args)
        updated = kcs.update_chain(chain["id"], {
            "customer_id": chain["customer_id"],
            "product_id": chain["product_id"],
            "quantity": 3,
        })
        assert updated["quantity"] == 3

    def test_invalid_mutable_value(self, chain_args):
        chain = kcs.create_chain(**chain_args)
        with pytest.raises(ValidationError):
            kcs.update_chain(chain["id"], {"lead_time_days": -1})

    def test_unknown_chain(self):
        with pytest.raises(NotFoundError):
            kcs.update_chain(999, {"quantity": 1})

    def test_counter_matches_live_count_after_retire_and_grow(self, chain_args):
        chain = kcs.create_chain(**chain_args, initial_active_count=3)
        kanban_lifecycle.retire(_cards(chain["id"])[0].id)
        kanban_lifecycle.retire(_cards(chain["id"])[0].id)
        updated = kcs.update_chain(chain["id"], {}, requested_active_count=4)
        assert updated["active_card_count"] == 4
        assert kcs.count_active(chain["id"]) == 4


class TestCounterCompareAndSet:
    def test_stale_expected_value_is_rejected(self, chain_args):
        chain = kcs.create_chain(**chain_args, initial_active_count=2)
        stored = _db.session.get(KanbanChain, chain["id"])
        with pytest.raises(ConflictError):
            kcs.set_active_count(stored, expected=5, new_value=6)
        _db.session.rollback()
        assert _db.session.get(KanbanChain, chain["id"]).active_card_count == 2


class TestDelete:
    def test_blocked_with_active_cards(self, chain_args):
        chain = kcs.create_chain(**chain_args, initial_active_count=1)
        with pytest.raises(ConflictError):
            kcs.delete_chain(chain["id"])

    def test_removes_retired_cards_and_history(self, chain_args):
        chain = kcs.create_chain(**chain_args, initial_active_count=2)
        for card in _cards(chain["id"]):
            kanban_lifecycle.retire(card.id)

        kcs.delete_chain(chain["id"])
        assert _db.session.get(KanbanChain, chain["id"]) is None
        assert _db.session.query(Kanban).count() == 0
        assert _db.session.query(KanbanHistory).count() == 0

    def test_list_filters(self, chain_args, make_account):
        kcs.create_chain(**chain_args)
        assert len(kcs.list_chains(customer_id=chain_args["customer_id"])) == 1
        assert kcs.list_chains(supplier_id=chain_args["customer_id"]) == []
        assert len(kcs.list_chains(product_id=chain_args["product_id"])) == 1


class TestRowLock:
    """Row locks must compile to SQL PostgreSQL accepts."""

    @pytest.mark.parametrize("model", [KanbanChain, Kanban])
    def test_locked_select_has_no_outer_join(self, model):
        sql = str(locked_select(model, 1).compile(dialect=postgresql.dialect()))
        assert "FOR UPDATE OF" in sql
        assert "JOIN" not in sql

    def test_locked_chain_still_loads_names(self, chain_args):
        chain = kcs.create_chain(**chain_args)
        _db.session.expunge_all()
        locked = get_or_raise(KanbanChain, chain["id"], for_update=True)
        assert locked.to_dict()["customer_name"] == "Customer Srl"
