"""
Tests — reference data service (accounts, products, statuses).
"""

import pytest

from ekanban.core.exceptions import ConflictError, NotFoundError, ValidationError
from ekanban.services import kanban_chain_service as kcs
from ekanban.services import kanban_lifecycle
from ekanban.services import reference_service as refs
from ekanban.services import status_chain_service as scs


class TestAccounts:
    def test_create_and_update(self, make_account):
        acc = make_account("ACME", vat_number=" IT01 ")
        assert acc["vat_number"] == "IT01"
        updated = refs.update_account(acc["id"], {"name": "ACME 2"})
        assert updated["name"] == "ACME 2"
        assert [a["name"] for a in refs.list_accounts()] == ["ACME 2"]

    @pytest.mark.parametrize("name", ["", "   ", None])
    def test_name_required(self, name):
        with pytest.raises(ValidationError):
            refs.create_account({"name": name})

    def test_delete_unknown(self):
        with pytest.raises(NotFoundError):
            refs.delete_account(404)

    def test_delete_in_use(self, chain_args):
        kcs.create_chain(**chain_args)
        with pytest.raises(ConflictError):
            refs.delete_account(chain_args["supplier_id"])


class TestProducts:
    def test_duplicate_code(self, make_product):
        make_product("Bolt", product_id="B-1")
        with pytest.raises(ConflictError):
            make_product("Other bolt", product_id="B-1")

    def test_delete_in_use(self, chain_args):
        kcs.create_chain(**chain_args)
        with pytest.raises(ConflictError):
            refs.delete_product(chain_args["product_id"])

    def test_delete_unused(self, make_product):
        p = make_product("Washer")
        refs.delete_product(p["product_id"])
        assert refs.list_products() == []


class TestStatuses:
    def test_default_color(self):
        assert refs.create_status({"name": "Open"})["color"] == "#999999"

    def test_delete_unused(self, make_status):
        s = make_status("Temp")
        refs.delete_status(s["status_id"])
        with pytest.raises(NotFoundError):
            refs.get_status(s["status_id"])

    def test_delete_in_chain(self, draft_shipped):
        with pytest.raises(ConflictError) as exc:
            refs.delete_status(draft_shipped["draft_id"])
        assert exc.value.details["status_chain_entries"] == 1

    def test_delete_still_in_history(self, chain_args, draft_shipped, make_status):
        """A status dropped from its chain stays while history rows mention it."""
        chain = kcs.create_chain(**chain_args, initial_active_count=1)
        [card] = kanban_lifecycle.list_cards(chain_id=chain["id"])
        kanban_lifecycle.retire(card["id"])
        scs.remove_entry(draft_shipped["id"], draft_shipped["draft_id"])

        with pytest.raises(ConflictError) as exc:
            refs.delete_status(draft_shipped["draft_id"])
        assert exc.value.details["history"] == 1
