"""
Kanban Lifecycle Service

Moves a physical card through the status chain bound to its kanban chain.

State machine:
    states       = entries of the status chain, ordered by ``order``
    transition   = entry i → entry (i + 1) mod N   (replenishment repeats)
    initial      = lowest-order entry, set by the chain manager
    gate         = only the entry's ``actor_role`` may move a card *out* of it

``advance`` is a compare-and-set on (kanban id, current status): a request
that lost a race re-reads the card and re-runs the role check against the
new status, so a stale read never overwrites a committed transition.

Usage:
    from ekanban.services.kanban_lifecycle import advance

    view = advance(kanban_id=7, requesting_role="supplier")
    view.to_dict()   # → wire CardView
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from flask import current_app
from sqlalchemy import select, update
from sqlalchemy.orm.attributes import set_committed_value

from ekanban.core.exceptions import (
    ConflictError,
    ForbiddenError,
    InconsistentStateError,
)
from ekanban.models import db
from ekanban.models.kanban import Kanban, KanbanChain, KanbanHistory
from ekanban.models.status_chain import StatusChainEntry
from ekanban.services.card_ordering import CardView
from ekanban.services.helpers.queries import get_or_raise
from ekanban.services.kanban_chain_service import set_active_count
from ekanban.services.status_chain_service import list_entries, parse_role

logger = logging.getLogger(__name__)


# ── Pure helpers ─────────────────────────────────────────────────────────────


def locate(entries: list[StatusChainEntry], status_id: int) -> int:
    """Index of ``status_id`` in the ordered entries, or -1."""
    for idx, entry in enumerate(entries):
        if entry.status_id == status_id:
            return idx
    return -1


def next_entry(entries: list[StatusChainEntry], index: int) -> StatusChainEntry:
    """Successor of ``entries[index]``; the last entry wraps to the first."""
    return entries[(index + 1) % len(entries)]


def build_view(card: Kanban, chain: KanbanChain, entry: StatusChainEntry) -> CardView:
    """CardView of ``card`` sitting at ``entry``."""
    return CardView(
        kanban_id=card.id,
        kanban_chain_id=chain.id,
        product_id=chain.product_id,
        product_name=chain.product.name if chain.product else chain.product_id,
        container_type=card.container_type or "",
        quantity=card.quantity,
        status_id=entry.status_id,
        status_name=entry.status.name if entry.status else "",
        status_color=entry.status.color if entry.status else "",
        actor_role=entry.role,
        last_updated=card.last_updated,
        supplier_name=chain.supplier.name if chain.supplier else "",
        customer_name=chain.customer.name if chain.customer else "",
    )


def _inconsistent(card: Kanban, chain: KanbanChain) -> InconsistentStateError:
    logger.error(
        "Kanban status not in its status chain kanban_id=%s status_id=%s status_chain_id=%s",
        card.id, card.current_status_id, chain.status_chain_id,
        extra={"kanban_id": card.id},
    )
    return InconsistentStateError(
        f"Kanban id={card.id} sits at status id={card.current_status_id}, "
        f"which is not part of status chain id={chain.status_chain_id}",
        details={
            "kanban_id": card.id,
            "status_id": card.current_status_id,
            "status_chain_id": chain.status_chain_id,
        },
    )


def card_views(chain: KanbanChain, cards: list[Kanban]) -> list[CardView]:
    """Views for several cards of one chain, sharing a single entries read.

    Raises:
        InconsistentStateError: any card sits outside the chain's statuses.
    """
    entries = list_entries(chain.status_chain_id)
    by_status = {e.status_id: e for e in entries}
    views = []
    for card in cards:
        entry = by_status.get(card.current_status_id)
        if entry is None:
            raise _inconsistent(card, chain)
        views.append(build_view(card, chain, entry))
    return views


# ── Transitions ──────────────────────────────────────────────────────────────


def compare_and_set_status(kanban_id: int, expected_status_id: int, new_status_id: int, now) -> bool:
    """Move an active card only if it still sits at ``expected_status_id``."""
    result = db.session.execute(
        update(Kanban)
        .where(
            Kanban.id == kanban_id,
            Kanban.current_status_id == expected_status_id,
            Kanban.is_active.is_(True),
        )
        .values(current_status_id=new_status_id, last_updated=now)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


def advance(kanban_id: int, requesting_role) -> CardView:
    """Push a card to the next status of its chain.

    Args:
        kanban_id: Card to move.
        requesting_role: ActorRole, 1/2 or "supplier"/"customer".

    Returns:
        CardView of the card at its new status; ``actor_role`` is the role
        that may act next.

    Raises:
        ValidationError: unparseable role.
        NotFoundError: unknown card.
        ConflictError: retired card, or the card kept moving under us for
            more than ``KANBAN_ADVANCE_MAX_RETRIES`` re-reads.
        ForbiddenError: ``requesting_role`` is not the current step's role.
        InconsistentStateError: the card's status is not in its chain.
    """
    role = parse_role(requesting_role)
    max_retries = int(current_app.config.get("KANBAN_ADVANCE_MAX_RETRIES", 3))

    for attempt in range(max_retries + 1):
        card = get_or_raise(Kanban, kanban_id)
        if not card.is_active:
            raise ConflictError(
                f"Kanban id={kanban_id} is retired", resource="Kanban",
                details={"kanban_id": kanban_id},
            )
        chain = card.kanban_chain
        entries = list_entries(chain.status_chain_id)
        idx = locate(entries, card.current_status_id)
        if idx < 0:
            raise _inconsistent(card, chain)

        current = entries[idx]
        if role != current.role:
            raise ForbiddenError(
                f"Kanban id={kanban_id} at status {current.status.name!r} can only be "
                f"advanced by the {current.role.label}",
                required_role=current.role,
                requesting_role=role,
            )

        target = next_entry(entries, idx)
        now = datetime.now(timezone.utc)
        if compare_and_set_status(card.id, current.status_id, target.status_id, now):
            set_committed_value(card, "current_status_id", target.status_id)
            set_committed_value(card, "last_updated", now)
            db.session.add(KanbanHistory(
                kanban_id=card.id,
                previous_status_id=current.status_id,
                next_status_id=target.status_id,
                actor_role=int(role),
                changed_at=now,
            ))
            db.session.commit()
            logger.info(
                "Kanban advanced kanban_id=%s from=%s to=%s by=%s",
                card.id, current.status_id, target.status_id, role.label,
                extra={"kanban_id": card.id},
            )
            return build_view(card, chain, target)

        logger.info(
            "Kanban advance lost a race, re-reading kanban_id=%s attempt=%d",
            kanban_id, attempt + 1,
        )
        db.session.expire(card)

    raise ConflictError(
        f"Kanban id={kanban_id} changed concurrently {max_retries + 1} times; retry later",
        resource="Kanban",
        details={"kanban_id": kanban_id},
    )


def retire(kanban_id: int) -> dict:
    """Take an active card out of circulation and decrement its chain counter.

    Raises:
        NotFoundError: unknown card.
        ConflictError: the card is already retired.
    """
    card = get_or_raise(Kanban, kanban_id)
    chain = get_or_raise(KanbanChain, card.kanban_chain_id, for_update=True)
    db.session.refresh(card)
    if not card.is_active:
        raise ConflictError(
            f"Kanban id={kanban_id} is already retired", resource="Kanban",
            details={"kanban_id": kanban_id},
        )
    card.is_active = False
    card.retired_at = datetime.now(timezone.utc)
    set_active_count(chain, chain.active_card_count, chain.active_card_count - 1)
    db.session.commit()
    logger.info(
        "Kanban retired kanban_id=%s chain_id=%s remaining=%d",
        card.id, chain.id, chain.active_card_count,
        extra={"kanban_id": card.id},
    )
    return _card_row(card)


# ── Reads ────────────────────────────────────────────────────────────────────


def _card_row(card: Kanban) -> dict:
    chain = card.kanban_chain
    result = card.to_dict()
    result.update({
        "product_id": chain.product_id,
        "product_name": chain.product.name if chain.product else None,
        "status_name": card.current_status.name if card.current_status else None,
        "status_color": card.current_status.color if card.current_status else None,
    })
    return result


def get_card(kanban_id: int) -> dict:
    """Stored card, plus its CardView fields while it is active."""
    card = get_or_raise(Kanban, kanban_id)
    result = _card_row(card)
    if card.is_active:
        result.update(card_views(card.kanban_chain, [card])[0].to_dict())
    return result


def list_cards(*, product_id=None, chain_id=None, include_retired=False) -> list[dict]:
    stmt = select(Kanban).join(KanbanChain, Kanban.kanban_chain_id == KanbanChain.id)
    if product_id is not None:
        stmt = stmt.where(KanbanChain.product_id == product_id)
    if chain_id is not None:
        stmt = stmt.where(Kanban.kanban_chain_id == chain_id)
    if not include_retired:
        stmt = stmt.where(Kanban.is_active.is_(True))
    stmt = stmt.order_by(Kanban.kanban_chain_id, Kanban.id)
    return [_card_row(c) for c in db.session.execute(stmt).unique().scalars()]


def history(kanban_id: int) -> list[dict]:
    """Transitions of a card, newest first."""
    get_or_raise(Kanban, kanban_id)
    rows = db.session.execute(
        select(KanbanHistory)
        .where(KanbanHistory.kanban_id == kanban_id)
        .order_by(KanbanHistory.id.desc())
    ).scalars()
    return [h.to_dict() for h in rows]
