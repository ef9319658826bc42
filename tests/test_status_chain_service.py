"""
Tests — Status Chain Registry service.

Covers:
    - create / rename / delete chains
    - add_entry ordering, collisions, unknown status
    - list_entries ordering
    - reorder_entry and bulk update_entries
    - remove_entry under "block" and "cascade" policies
"""

import pytest

from ekanban.core.exceptions import ConflictError, NotFoundError, ValidationError
from ekanban.models import db as _db
from ekanban.models.kanban import Kanban, KanbanHistory
from ekanban.models.status_chain import ActorRole
from ekanban.services import kanban_chain_service as kcs
from ekanban.services import kanban_lifecycle
from ekanban.services import status_chain_service as scs


class TestChains:
    def test_create_requires_name(self):
        with pytest.raises(ValidationError):
            scs.create_chain("   ")

    def test_create_empty_chain(self):
        chain = scs.create_chain("Standard")
        assert chain["name"] == "Standard"
        assert chain["entries"] == []
        assert scs.list_entries(chain["id"]) == []

    def test_list_chains(self):
        scs.create_chain("A")
        scs.create_chain("B")
        assert [c["name"] for c in scs.list_chains()] == ["A", "B"]

    def test_rename(self):
        chain = scs.create_chain("Old")
        assert scs.rename_chain(chain["id"], "New")["name"] == "New"

    def test_get_unknown_chain(self):
        with pytest.raises(NotFoundError):
            scs.get_chain(999)

    def test_delete_unused_chain(self):
        chain = scs.create_chain("Tmp")
        scs.delete_chain(chain["id"])
        with pytest.raises(NotFoundError):
            scs.get_chain(chain["id"])

    def test_delete_chain_in_use_is_blocked(self, chain_args, draft_shipped):
        kcs.create_chain(**chain_args)
        with pytest.raises(ConflictError):
            scs.delete_chain(draft_shipped["id"])


class TestEntries:
    def test_entries_listed_by_order(self, make_status):
        chain = scs.create_chain("Chain")
        a, b, c = make_status("A"), make_status("B"), make_status("C")
        scs.add_entry(chain["id"], c["status_id"], 30, "customer")
        scs.add_entry(chain["id"], a["status_id"], 10, "supplier")
        scs.add_entry(chain["id"], b["status_id"], 20, 2)

        entries = scs.list_entries(chain["id"])
        assert [e.status_id for e in entries] == [a["status_id"], b["status_id"], c["status_id"]]
        assert [e.role for e in entries] == [ActorRole.SUPPLIER, ActorRole.CUSTOMER, ActorRole.CUSTOMER]

    def test_order_collision(self, make_status):
        chain = scs.create_chain("Chain")
        a, b = make_status("A"), make_status("B")
        scs.add_entry(chain["id"], a["status_id"], 1, "supplier")
        with pytest.raises(ConflictError):
            scs.add_entry(chain["id"], b["status_id"], 1, "customer")

    def test_status_twice_in_chain(self, make_status):
        chain = scs.create_chain("Chain")
        a = make_status("A")
        scs.add_entry(chain["id"], a["status_id"], 1, "supplier")
        with pytest.raises(ConflictError):
            scs.add_entry(chain["id"], a["status_id"], 2, "customer")

    def test_unknown_status(self):
        chain = scs.create_chain("Chain")
        with pytest.raises(NotFoundError):
            scs.add_entry(chain["id"], 4242, 1, "supplier")

    @pytest.mark.parametrize("order", [0, -3, "x", None, True])
    def test_invalid_order(self, make_status, order):
        chain = scs.create_chain("Chain")
        a = make_status("A")
        with pytest.raises(ValidationError):
            scs.add_entry(chain["id"], a["status_id"], order, "supplier")

    @pytest.mark.parametrize("role", [0, 3, "buyer", None, ""])
    def test_invalid_role(self, make_status, role):
        chain = scs.create_chain("Chain")
        a = make_status("A")
        with pytest.raises(ValidationError):
            scs.add_entry(chain["id"], a["status_id"], 1, role)

    def test_list_entries_unknown_chain(self):
        with pytest.raises(NotFoundError):
            scs.list_entries(999)

    def test_reorder(self, draft_shipped):
        entries = scs.reorder_entry(draft_shipped["id"], draft_shipped["draft_id"], 5)
        assert [e["status_id"] for e in entries] == [draft_shipped["shipped_id"], draft_shipped["draft_id"]]
        assert [e["order"] for e in entries] == [2, 5]

    def test_reorder_to_taken_order(self, draft_shipped):
        with pytest.raises(ConflictError):
            scs.reorder_entry(draft_shipped["id"], draft_shipped["draft_id"], 2)

    def test_update_entries_swaps_orders(self, draft_shipped):
        entries = scs.update_entries(draft_shipped["id"], [
            {"status_id": draft_shipped["draft_id"], "order": 2},
            {"status_id": draft_shipped["shipped_id"], "order": 1, "actor_role": "supplier"},
        ])
        assert [e["status_id"] for e in entries] == [draft_shipped["shipped_id"], draft_shipped["draft_id"]]
        assert [e["actor_role"] for e in entries] == [1, 1]

    def test_update_entries_duplicate_orders_rejected(self, draft_shipped):
        with pytest.raises(ConflictError):
            scs.update_entries(draft_shipped["id"], [
                {"status_id": draft_shipped["draft_id"], "order": 2},
            ])

    def test_update_entries_unknown_status(self, draft_shipped):
        with pytest.raises(ValidationError):
            scs.update_entries(draft_shipped["id"], [{"status_id": 4242, "order": 9}])


class TestRemoveEntry:
    def test_remove_unused_entry(self, draft_shipped):
        result = scs.remove_entry(draft_shipped["id"], draft_shipped["shipped_id"])
        assert result["removed"]["status_id"] == draft_shipped["shipped_id"]
        assert result["moved_kanbans"] == []
        assert [e.status_id for e in scs.list_entries(draft_shipped["id"])] == [draft_shipped["draft_id"]]

    def test_remove_unknown_entry(self, draft_shipped):
        with pytest.raises(NotFoundError):
            scs.remove_entry(draft_shipped["id"], 4242)

    def test_block_when_cards_sit_on_status(self, chain_args, draft_shipped):
        kcs.create_chain(**chain_args, initial_active_count=2)
        with pytest.raises(ConflictError) as exc:
            scs.remove_entry(draft_shipped["id"], draft_shipped["draft_id"], policy="block")
        assert len(exc.value.details["kanban_ids"]) == 2

    def test_retired_cards_do_not_block(self, chain_args, draft_shipped):
        chain = kcs.create_chain(**chain_args, initial_active_count=1)
        card_id = kanban_lifecycle.list_cards(chain_id=chain["id"])[0]["id"]
        kanban_lifecycle.retire(card_id)
        result = scs.remove_entry(draft_shipped["id"], draft_shipped["draft_id"], policy="block")
        assert result["moved_kanbans"] == []

    def test_cascade_moves_cards_to_successor(self, chain_args, draft_shipped):
        kcs.create_chain(**chain_args, initial_active_count=2)
        result = scs.remove_entry(draft_shipped["id"], draft_shipped["draft_id"], policy="cascade")
        assert len(result["moved_kanbans"]) == 2

        cards = _db.session.query(Kanban).all()
        assert {c.current_status_id for c in cards} == {draft_shipped["shipped_id"]}
        moves = _db.session.query(KanbanHistory).filter(
            KanbanHistory.previous_status_id == draft_shipped["draft_id"],
            KanbanHistory.next_status_id == draft_shipped["shipped_id"],
        ).all()
        assert len(moves) == 2
        assert all(m.actor_role is None for m in moves)

    def test_cascade_never_removes_last_entry_with_cards(self, chain_args, draft_shipped):
        kcs.create_chain(**chain_args, initial_active_count=1)
        scs.remove_entry(draft_shipped["id"], draft_shipped["shipped_id"])
        with pytest.raises(ConflictError):
            scs.remove_entry(draft_shipped["id"], draft_shipped["draft_id"], policy="cascade")

    def test_default_policy_comes_from_config(self, app, chain_args, draft_shipped):
        kcs.create_chain(**chain_args, initial_active_count=1)
        app.config["CHAIN_ENTRY_REMOVAL_POLICY"] = "cascade"
        try:
            result = scs.remove_entry(draft_shipped["id"], draft_shipped["draft_id"])
        finally:
            app.config["CHAIN_ENTRY_REMOVAL_POLICY"] = "block"
        assert len(result["moved_kanbans"]) == 1

    def test_unknown_policy(self, draft_shipped):
        with pytest.raises(ValidationError):
            scs.remove_entry(draft_shipped["id"], draft_shipped["draft_id"], policy="shrug")
