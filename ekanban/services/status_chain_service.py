"""
Status Chain Registry — service layer.

Owns the definition of ordered, role-tagged status sequences. The ordering
returned by ``list_entries`` is load-bearing: the kanban lifecycle walks it
to find a card's successor status.

Rules:
  - ``order`` is a positive integer, unique within a chain.
  - A status appears at most once per chain.
  - An entry on which active cards sit cannot be removed under the default
    "block" policy. Under "cascade" those cards move to the following entry
    and the move is recorded in their history.
  - A chain referenced by any kanban chain cannot be deleted.

Usage:
    from ekanban.services import status_chain_service as scs

    chain = scs.create_chain("Standard replenishment")
    scs.add_entry(chain["id"], status_id=1, order=1, role="supplier")
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from flask import current_app
from sqlalchemy import func, select

from ekanban.core.exceptions import ConflictError, NotFoundError, ValidationError
from ekanban.models import db
from ekanban.models.kanban import Kanban, KanbanChain, KanbanHistory
from ekanban.models.reference import Status
from ekanban.models.status_chain import ActorRole, StatusChain, StatusChainEntry
from ekanban.services.helpers.queries import get_or_raise

logger = logging.getLogger(__name__)

REMOVAL_POLICIES = {"block", "cascade"}


# ── Input coercion ───────────────────────────────────────────────────────────


def parse_order(value) -> int:
    """Return ``value`` as a positive int or raise ValidationError."""
    if isinstance(value, bool):
        raise ValidationError("order must be a positive integer", details={"order": value})
    try:
        order = int(value)
    except (TypeError, ValueError):
        raise ValidationError("order must be a positive integer", details={"order": value}) from None
    if order <= 0:
        raise ValidationError("order must be a positive integer", details={"order": value})
    return order


def parse_role(value) -> ActorRole:
    """Return ``value`` as an ActorRole or raise ValidationError."""
    try:
        return ActorRole.parse(value)
    except ValueError:
        raise ValidationError(
            "actor_role must be 1/'supplier' or 2/'customer'", details={"actor_role": value},
        ) from None


def _parse_name(name) -> str:
    name = (name or "").strip() if isinstance(name, str) else ""
    if not name:
        raise ValidationError("name is required", details={"name": "required"})
    if len(name) > 150:
        raise ValidationError("name must be ≤ 150 characters", details={"name": "too long"})
    return name


# ── Queries ──────────────────────────────────────────────────────────────────


def _entries_query(chain_id: int):
    return (
        select(StatusChainEntry)
        .where(StatusChainEntry.status_chain_id == chain_id)
        .order_by(StatusChainEntry.order.asc())
    )


def list_entries(chain_id: int) -> list[StatusChainEntry]:
    """Entries of a chain sorted by ``order`` ascending.

    Raises:
        NotFoundError: if the chain does not exist.
    """
    get_or_raise(StatusChain, chain_id)
    return list(db.session.execute(_entries_query(chain_id)).scalars())


def first_entry(chain_id: int) -> StatusChainEntry | None:
    """Lowest-order entry, or None for an empty chain."""
    return db.session.execute(_entries_query(chain_id).limit(1)).scalars().first()


def _get_entry(chain_id: int, status_id: int) -> StatusChainEntry:
    entry = db.session.get(StatusChainEntry, (chain_id, status_id))
    if entry is None:
        raise NotFoundError(resource="StatusChainEntry", resource_id=f"{chain_id}/{status_id}")
    return entry


def _active_cards_at(chain_id: int, status_id: int):
    return (
        select(Kanban)
        .join(KanbanChain, Kanban.kanban_chain_id == KanbanChain.id)
        .where(
            KanbanChain.status_chain_id == chain_id,
            Kanban.current_status_id == status_id,
            Kanban.is_active.is_(True),
        )
    )


# ── Chains ───────────────────────────────────────────────────────────────────


def list_chains() -> list[dict]:
    rows = db.session.execute(select(StatusChain).order_by(StatusChain.id)).scalars()
    return [c.to_dict() for c in rows]


def get_chain(chain_id: int) -> dict:
    chain = get_or_raise(StatusChain, chain_id)
    return chain.to_dict(include_entries=True)


def create_chain(name, entries: list[dict] | None = None) -> dict:
    """Create a chain, optionally with its initial entries, in one transaction.

    Raises:
        ValidationError: empty name or malformed entry.
        NotFoundError: an entry references an unknown status.
        ConflictError: two entries share an order or a status.
    """
    chain = StatusChain(name=_parse_name(name))
    db.session.add(chain)
    db.session.flush()
    for item in entries or []:
        if not isinstance(item, dict):
            raise ValidationError("each entry must be an object")
        _add_entry(chain, item.get("status_id"), item.get("order"), item.get("actor_role"))
    db.session.commit()
    logger.info("Status chain created id=%s entries=%d", chain.id, len(entries or []))
    return chain.to_dict(include_entries=True)


def rename_chain(chain_id: int, name) -> dict:
    chain = get_or_raise(StatusChain, chain_id)
    chain.name = _parse_name(name)
    db.session.commit()
    return chain.to_dict()


def delete_chain(chain_id: int) -> None:
    chain = get_or_raise(StatusChain, chain_id)
    bound = db.session.execute(
        select(func.count(KanbanChain.id)).where(KanbanChain.status_chain_id == chain_id)
    ).scalar_one()
    if bound:
        raise ConflictError(
            f"StatusChain id={chain_id} is used by {bound} kanban chain(s)",
            resource="StatusChain",
            details={"kanban_chains": bound},
        )
    db.session.delete(chain)
    db.session.commit()
    logger.info("Status chain deleted id=%s", chain_id)


# ── Entries ──────────────────────────────────────────────────────────────────


def _add_entry(chain: StatusChain, status_id, order, role) -> StatusChainEntry:
    order = parse_order(order)
    role = parse_role(role)
    if status_id is None:
        raise ValidationError("status_id is required", details={"status_id": "required"})
    get_or_raise(Status, status_id)

    existing = db.session.execute(
        select(StatusChainEntry).where(StatusChainEntry.status_chain_id == chain.id)
    ).scalars().all()
    if any(e.order == order for e in existing):
        raise ConflictError(
            f"order {order} is already used in status chain id={chain.id}",
            resource="StatusChainEntry",
            details={"order": order},
        )
    if any(e.status_id == status_id for e in existing):
        raise ConflictError(
            f"status id={status_id} is already part of status chain id={chain.id}",
            resource="StatusChainEntry",
            details={"status_id": status_id},
        )

    entry = StatusChainEntry(
        status_chain_id=chain.id, status_id=status_id, order=order, actor_role=int(role),
    )
    db.session.add(entry)
    db.session.flush()
    return entry


def add_entry(chain_id: int, status_id, order, role) -> dict:
    """Append a status to a chain at position ``order``."""
    chain = get_or_raise(StatusChain, chain_id, for_update=True)
    entry = _add_entry(chain, status_id, order, role)
    db.session.commit()
    logger.info(
        "Status chain entry added chain_id=%s status_id=%s order=%s role=%s",
        chain_id, entry.status_id, entry.order, entry.role.label,
    )
    return entry.to_dict()


def remove_entry(chain_id: int, status_id: int, *, policy: str | None = None) -> dict:
    """Remove a status from a chain.

    Returns:
        {"removed": {...entry}, "moved_kanbans": [ids]}

    Raises:
        ConflictError: active cards sit on the status and the policy is
            "block", or the entry is the last one of a chain with cards on it.
    """
    policy = policy or current_app.config.get("CHAIN_ENTRY_REMOVAL_POLICY", "block")
    if policy not in REMOVAL_POLICIES:
        raise ValidationError(f"unknown removal policy {policy!r}")

    get_or_raise(StatusChain, chain_id, for_update=True)
    entry = _get_entry(chain_id, status_id)
    cards = list(db.session.execute(_active_cards_at(chain_id, status_id)).scalars())

    moved: list[int] = []
    if cards:
        entries = list(db.session.execute(_entries_query(chain_id)).scalars())
        if policy == "block" or len(entries) == 1:
            raise ConflictError(
                f"{len(cards)} active kanban(s) sit at status id={status_id} "
                f"in status chain id={chain_id}",
                resource="StatusChainEntry",
                details={"kanban_ids": [c.id for c in cards]},
            )
        idx = next(i for i, e in enumerate(entries) if e.status_id == status_id)
        successor = entries[(idx + 1) % len(entries)]
        now = datetime.now(timezone.utc)
        for card in cards:
            db.session.add(KanbanHistory(
                kanban_id=card.id,
                previous_status_id=card.current_status_id,
                next_status_id=successor.status_id,
                actor_role=None,
                changed_at=now,
            ))
            card.current_status_id = successor.status_id
            card.last_updated = now
            moved.append(card.id)

    removed = entry.to_dict()
    db.session.delete(entry)
    db.session.commit()
    logger.info(
        "Status chain entry removed chain_id=%s status_id=%s policy=%s moved=%d",
        chain_id, status_id, policy, len(moved),
    )
    return {"removed": removed, "moved_kanbans": moved}


def reorder_entry(chain_id: int, status_id: int, new_order) -> list[dict]:
    """Move one entry to ``new_order``; returns the re-listed entries."""
    new_order = parse_order(new_order)
    get_or_raise(StatusChain, chain_id, for_update=True)
    entry = _get_entry(chain_id, status_id)
    clash = db.session.execute(
        select(StatusChainEntry).where(
            StatusChainEntry.status_chain_id == chain_id,
            StatusChainEntry.order == new_order,
            StatusChainEntry.status_id != status_id,
        )
    ).scalars().first()
    if clash is not None:
        raise ConflictError(
            f"order {new_order} is already used by status id={clash.status_id}",
            resource="StatusChainEntry",
            details={"order": new_order},
        )
    entry.order = new_order
    db.session.commit()
    return [e.to_dict() for e in list_entries(chain_id)]


def update_entries(chain_id: int, updates: list[dict]) -> list[dict]:
    """Bulk re-order / re-role existing entries atomically.

    Each update is ``{status_id, order?, actor_role?}``. The resulting set of
    orders must be unique; swaps between entries are allowed.
    """
    if not isinstance(updates, list):
        raise ValidationError("body must be a list of entries")
    get_or_raise(StatusChain, chain_id, for_update=True)
    entries = {e.status_id: e for e in db.session.execute(_entries_query(chain_id)).scalars()}

    planned: dict[int, tuple[int, int]] = {
        sid: (e.order, e.actor_role) for sid, e in entries.items()
    }
    for item in updates:
        if not isinstance(item, dict) or item.get("status_id") not in entries:
            raise ValidationError(
                "each entry must reference a status already in the chain",
                details={"entry": item},
            )
        sid = item["status_id"]
        order, role = planned[sid]
        if "order" in item:
            order = parse_order(item["order"])
        if "actor_role" in item:
            role = int(parse_role(item["actor_role"]))
        planned[sid] = (order, role)

    orders = [o for o, _ in planned.values()]
    if len(orders) != len(set(orders)):
        raise ConflictError(
            "resulting entry orders must be unique", resource="StatusChainEntry",
            details={"orders": sorted(orders)},
        )

    # Park changed entries above the current maximum so swaps never trip the
    # (status_chain_id, order) unique constraint mid-flush.
    changed = [sid for sid, (o, _) in planned.items() if entries[sid].order != o]
    ceiling = max([e.order for e in entries.values()] + orders + [0])
    for offset, sid in enumerate(changed, start=1):
        entries[sid].order = ceiling + offset
    db.session.flush()
    for sid, (order, role) in planned.items():
        entries[sid].order = order
        entries[sid].actor_role = role
    db.session.commit()
    logger.info("Status chain entries updated chain_id=%s changed=%d", chain_id, len(updates))
    return [e.to_dict() for e in list_entries(chain_id)]
