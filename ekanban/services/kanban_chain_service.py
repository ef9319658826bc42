"""
Kanban Chain Manager — service layer.

A kanban chain is the customer ⇄ supplier agreement for one product, bound
to a status chain. It owns the number of physical cards in circulation.

Rules:
  - customer, supplier, product and status chain are fixed at creation;
  - lead time, quantity and container type are editable and are copied onto
    the chain's active cards in the same transaction;
  - growing ``active_card_count`` materializes exactly the delta at the first
    status of the bound chain;
  - shrinking is refused with CannotAutoShrinkError and nothing in the
    update is applied; cards must be retired one by one
    (``kanban_lifecycle.retire``);
  - ``active_card_count`` is changed only together with card creation or
    retirement, with a compare-and-set against the locked chain row.

Usage:
    from ekanban.services import kanban_chain_service as kcs

    chain = kcs.create_chain(customer_id=1, supplier_id=2, product_id="P-1",
                             status_chain_id=3, initial_active_count=4)
    kcs.update_chain(chain["id"], {"quantity": 12}, requested_active_count=6)
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy import delete, func, select, update
from sqlalchemy.orm.attributes import set_committed_value

from ekanban.core.exceptions import (
    CannotAutoShrinkError,
    ConflictError,
    ValidationError,
)
from ekanban.models import db
from ekanban.models.kanban import (
    IMMUTABLE_CHAIN_FIELDS,
    MUTABLE_CHAIN_FIELDS,
    Kanban,
    KanbanChain,
    KanbanHistory,
)
from ekanban.models.reference import Account, Product
from ekanban.models.status_chain import StatusChain
from ekanban.services.helpers.queries import get_or_raise
from ekanban.services.status_chain_service import first_entry

logger = logging.getLogger(__name__)


# ── Input coercion ───────────────────────────────────────────────────────────


def _non_negative_int(value, field: str) -> int:
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be a non-negative integer", details={field: value})
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise ValidationError(
            f"{field} must be a non-negative integer", details={field: value},
        ) from None
    if number < 0 or number != float(value):
        raise ValidationError(f"{field} must be a non-negative integer", details={field: value})
    return number


def _non_negative_number(value, field: str) -> float:
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be a non-negative number", details={field: value})
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise ValidationError(
            f"{field} must be a non-negative number", details={field: value},
        ) from None
    if number < 0:
        raise ValidationError(f"{field} must be a non-negative number", details={field: value})
    return number


def _container_type(value) -> str:
    value = "" if value is None else str(value).strip()
    if len(value) > 100:
        raise ValidationError("container_type must be ≤ 100 characters",
                              details={"container_type": "too long"})
    return value


_COERCE = {
    "lead_time_days": lambda v: _non_negative_int(v, "lead_time_days"),
    "quantity": lambda v: _non_negative_number(v, "quantity"),
    "container_type": _container_type,
}


def _same_key(stored, value) -> bool:
    if value is None:
        return stored is None
    return str(stored) == str(value).strip()


# ── Card materialization ─────────────────────────────────────────────────────


def _require_first_entry(status_chain_id: int):
    entry = first_entry(status_chain_id)
    if entry is None:
        raise ValidationError(
            "status chain has no entries; cannot create kanbans",
            details={"status_chain_id": status_chain_id},
        )
    return entry


def _materialize(chain: KanbanChain, count: int, entry=None) -> list[Kanban]:
    """Create ``count`` active cards at the first status of the chain.

    Caller holds the chain row lock and owns the commit.
    """
    if count <= 0:
        return []
    if entry is None:
        entry = _require_first_entry(chain.status_chain_id)
    now = datetime.now(timezone.utc)
    cards = [
        Kanban(
            kanban_chain_id=chain.id,
            current_status_id=entry.status_id,
            lead_time_days=chain.lead_time_days,
            container_type=chain.container_type,
            quantity=chain.quantity,
            is_active=True,
            last_updated=now,
        )
        for _ in range(count)
    ]
    db.session.add_all(cards)
    db.session.flush()
    db.session.add_all([
        KanbanHistory(
            kanban_id=card.id,
            previous_status_id=None,
            next_status_id=entry.status_id,
            actor_role=None,
            changed_at=now,
        )
        for card in cards
    ])
    return cards


def set_active_count(chain: KanbanChain, expected: int, new_value: int) -> None:
    """Compare-and-set the chain counter.

    Raises:
        ConflictError: the stored counter is no longer ``expected``.
    """
    result = db.session.execute(
        update(KanbanChain)
        .where(KanbanChain.id == chain.id, KanbanChain.active_card_count == expected)
        .values(active_card_count=new_value)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        raise ConflictError(
            f"KanbanChain id={chain.id} was modified concurrently; retry",
            resource="KanbanChain",
            details={"expected_active": expected},
        )
    set_committed_value(chain, "active_card_count", new_value)


def count_active(chain_id: int) -> int:
    """Live count of active cards; must always equal the stored counter."""
    return db.session.execute(
        select(func.count(Kanban.id)).where(
            Kanban.kanban_chain_id == chain_id, Kanban.is_active.is_(True),
        )
    ).scalar_one()


# ── Queries ──────────────────────────────────────────────────────────────────


def list_chains(*, customer_id=None, supplier_id=None, product_id=None) -> list[dict]:
    stmt = select(KanbanChain).order_by(KanbanChain.id)
    if customer_id is not None:
        stmt = stmt.where(KanbanChain.customer_id == customer_id)
    if supplier_id is not None:
        stmt = stmt.where(KanbanChain.supplier_id == supplier_id)
    if product_id is not None:
        stmt = stmt.where(KanbanChain.product_id == product_id)
    return [c.to_dict() for c in db.session.execute(stmt).unique().scalars()]


def get_chain(chain_id: int) -> dict:
    return get_or_raise(KanbanChain, chain_id).to_dict()


# ── Create / update / delete ─────────────────────────────────────────────────


def create_chain(
    customer_id,
    supplier_id,
    product_id,
    status_chain_id,
    lead_time_days=0,
    quantity=0,
    container_type="",
    initial_active_count=0,
) -> dict:
    """Create an agreement and its first ``initial_active_count`` cards.

    Raises:
        ValidationError: negative counts, quantity or lead time; cards
            requested on a status chain without entries.
        NotFoundError: an unknown customer, supplier, product or status chain.
    """
    for field, value in (
        ("customer_id", customer_id), ("supplier_id", supplier_id),
        ("product_id", product_id), ("status_chain_id", status_chain_id),
    ):
        if value is None or value == "":
            raise ValidationError(f"{field} is required", details={field: "required"})

    count = _non_negative_int(initial_active_count, "initial_active_count")
    chain = KanbanChain(
        lead_time_days=_non_negative_int(lead_time_days, "lead_time_days"),
        quantity=_non_negative_number(quantity, "quantity"),
        container_type=_container_type(container_type),
        active_card_count=0,
    )
    chain.customer_id = get_or_raise(Account, customer_id, label="Customer").id
    chain.supplier_id = get_or_raise(Account, supplier_id, label="Supplier").id
    chain.product_id = get_or_raise(Product, product_id).product_id
    chain.status_chain_id = get_or_raise(StatusChain, status_chain_id).id
    entry = _require_first_entry(chain.status_chain_id) if count else None

    db.session.add(chain)
    db.session.flush()
    _materialize(chain, count, entry)
    set_active_count(chain, 0, count)
    db.session.commit()
    logger.info(
        "Kanban chain created id=%s product=%s customer=%s supplier=%s kanbans=%d",
        chain.id, chain.product_id, chain.customer_id, chain.supplier_id, count,
    )
    return chain.to_dict()


def update_chain(chain_id: int, fields: dict | None, requested_active_count=None) -> dict:
    """Apply mutable-field edits and grow the card count in one transaction.

    Raises:
        ValidationError: malformed values, or an immutable field whose value
            differs from the stored one.
        CannotAutoShrinkError: ``requested_active_count`` is lower than the
            current active count. Nothing is applied.
    """
    fields = fields or {}
    if not isinstance(fields, dict):
        raise ValidationError("fields must be an object")

    chain = get_or_raise(KanbanChain, chain_id, for_update=True)

    changed_immutables = {
        f: fields[f] for f in IMMUTABLE_CHAIN_FIELDS
        if f in fields and not _same_key(getattr(chain, f), fields[f])
    }
    if changed_immutables:
        raise ValidationError(
            "customer, supplier, product and status chain cannot be changed",
            details={f: "immutable" for f in changed_immutables},
        )

    changes = {f: _COERCE[f](fields[f]) for f in MUTABLE_CHAIN_FIELDS if f in fields}

    current = chain.active_card_count
    requested = current
    if requested_active_count is not None:
        requested = _non_negative_int(requested_active_count, "active_card_count")
        if requested < current:
            raise CannotAutoShrinkError(chain.id, current, requested)
    entry = _require_first_entry(chain.status_chain_id) if requested > current else None

    for field, value in changes.items():
        setattr(chain, field, value)
    if changes:
        db.session.execute(
            update(Kanban)
            .where(Kanban.kanban_chain_id == chain.id, Kanban.is_active.is_(True))
            .values(**changes)
            .execution_options(synchronize_session="fetch")
        )

    added = []
    if requested > current:
        added = _materialize(chain, requested - current, entry)
        set_active_count(chain, current, requested)

    db.session.commit()
    logger.info(
        "Kanban chain updated id=%s fields=%s added_kanbans=%d",
        chain.id, ",".join(sorted(changes)) or "-", len(added),
    )
    return chain.to_dict()


def delete_chain(chain_id: int) -> None:
    """Remove a chain with no active cards, together with its retired cards.

    Raises:
        ConflictError: the chain still has active cards.
    """
    chain = get_or_raise(KanbanChain, chain_id, for_update=True)
    active = count_active(chain.id)
    if active:
        raise ConflictError(
            f"KanbanChain id={chain_id} still has {active} active kanban(s)",
            resource="KanbanChain",
            details={"active_kanbans": active},
        )
    card_ids = select(Kanban.id).where(Kanban.kanban_chain_id == chain.id)
    db.session.execute(
        delete(KanbanHistory).where(KanbanHistory.kanban_id.in_(card_ids))
        .execution_options(synchronize_session=False)
    )
    db.session.execute(
        delete(Kanban).where(Kanban.kanban_chain_id == chain.id)
        .execution_options(synchronize_session=False)
    )
    db.session.delete(chain)
    db.session.commit()
    logger.info("Kanban chain deleted id=%s", chain_id)
