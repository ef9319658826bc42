"""
Dashboard Aggregator — per-viewer card views.

For a customer or supplier account, collects the active cards of every
kanban chain where the account plays that role, groups them by product
code (groups appear in order of first occurrence) and sorts each group with
``card_ordering.sort_cards`` for the viewer's role.

A chain whose cards cannot be rendered is left out of the result and
logged; the rest of the dashboard is still returned. Reads are not
transactional with writes.
"""

import logging
from collections import OrderedDict

from sqlalchemy import select

from ekanban.core.exceptions import InconsistentStateError, NotFoundError
from ekanban.models import db
from ekanban.models.kanban import Kanban, KanbanChain
from ekanban.models.status_chain import ActorRole
from ekanban.services.card_ordering import CardView, sort_cards
from ekanban.services.kanban_lifecycle import card_views

logger = logging.getLogger(__name__)


def _chains_for(account_id: int, role: ActorRole) -> list[KanbanChain]:
    column = KanbanChain.customer_id if role == ActorRole.CUSTOMER else KanbanChain.supplier_id
    stmt = select(KanbanChain).where(column == account_id).order_by(KanbanChain.id)
    return list(db.session.execute(stmt).unique().scalars())


def _active_cards(chain_id: int) -> list[Kanban]:
    stmt = (
        select(Kanban)
        .where(Kanban.kanban_chain_id == chain_id, Kanban.is_active.is_(True))
        .order_by(Kanban.id)
    )
    return list(db.session.execute(stmt).unique().scalars())


def build_dashboard(account_id: int, viewer_role) -> "OrderedDict[str, list[CardView]]":
    """Product code → ordered CardViews for ``account_id`` acting as ``viewer_role``."""
    role = ActorRole.parse(viewer_role)
    groups: OrderedDict[str, list[CardView]] = OrderedDict()
    omitted = 0

    for chain in _chains_for(account_id, role):
        try:
            views = card_views(chain, _active_cards(chain.id))
        except (InconsistentStateError, NotFoundError) as exc:
            omitted += 1
            logger.warning(
                "Dashboard skipped kanban chain id=%s account=%s role=%s: %s",
                chain.id, account_id, role.label, exc,
            )
            continue
        for view in views:
            groups.setdefault(view.product_id, []).append(view)

    for product, views in groups.items():
        groups[product] = sort_cards(views, role)

    logger.debug(
        "Dashboard built account=%s role=%s products=%d omitted_chains=%d",
        account_id, role.label, len(groups), omitted,
    )
    return groups


def for_customer(customer_id: int):
    return build_dashboard(customer_id, ActorRole.CUSTOMER)


def for_supplier(supplier_id: int):
    return build_dashboard(supplier_id, ActorRole.SUPPLIER)


def merge_card(snapshot, view: CardView, viewer_role):
    """Return a new snapshot with ``view`` replacing the card of the same id.

    ``snapshot`` is left untouched. The receiving group is re-sorted; a group
    emptied by the move disappears.
    """
    role = ActorRole.parse(viewer_role)
    merged: OrderedDict[str, list[CardView]] = OrderedDict()
    for product, views in snapshot.items():
        kept = [v for v in views if v.kanban_id != view.kanban_id]
        if kept or product == view.product_id:
            merged[product] = kept
    merged.setdefault(view.product_id, [])
    merged[view.product_id] = sort_cards(merged[view.product_id] + [view], role)
    return merged


def to_wire(groups) -> dict:
    """JSON-ready ``kanbans_by_product``, keyed by product name.

    Products sharing a name are told apart as ``"<name> (<product_id>)"``.
    """
    names = {pid: views[0].product_name for pid, views in groups.items() if views}
    taken: dict[str, int] = {}
    for name in names.values():
        taken[name] = taken.get(name, 0) + 1

    wire = {}
    for pid, views in groups.items():
        if not views:
            continue
        name = names[pid]
        key = name if taken[name] == 1 else f"{name} ({pid})"
        wire[key] = [v.to_dict() for v in views]
    return wire
