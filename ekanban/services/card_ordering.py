"""
Card view and dashboard ordering.

``CardView`` is the read model returned by the lifecycle and the dashboard;
``to_dict`` renders the wire field names the front-end consumes.

Ordering for a viewer role R:
  1. cards whose current actor role equals R (awaiting the viewer) first;
  2. then ``last_updated`` ascending (longest-waiting first);
  3. ties keep their input order (``sorted`` is stable).

Pure functions, no database access.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone

from ekanban.models.status_chain import ActorRole


@dataclass(frozen=True)
class CardView:
    """Display snapshot of one active kanban card."""
    kanban_id: int
    kanban_chain_id: int
    product_id: str
    product_name: str
    container_type: str
    quantity: float
    status_id: int
    status_name: str
    status_color: str
    actor_role: ActorRole
    last_updated: datetime
    supplier_name: str
    customer_name: str

    def to_dict(self) -> dict:
        return {
            "kanban_id": self.kanban_id,
            "kanban_chain_id": self.kanban_chain_id,
            "product_id": self.product_id,
            "product_name": self.product_name,
            "tipo_contenitore": self.container_type,
            "quantity": self.quantity,
            "status_current": self.status_id,
            "status_name": self.status_name,
            "status_color": self.status_color,
            "customer_supplier": int(self.actor_role),
            "data_aggiornamento": as_utc(self.last_updated).isoformat(),
            "supplier_name": self.supplier_name,
            "customer_name": self.customer_name,
        }


def as_utc(value: datetime) -> datetime:
    """SQLite hands back naive datetimes; treat them as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def sort_key(card: CardView, viewer_role: ActorRole) -> tuple:
    """Key implementing the dashboard ordering for ``viewer_role``."""
    return (0 if card.actor_role == viewer_role else 1, as_utc(card.last_updated))


def sort_cards(cards, viewer_role) -> list[CardView]:
    """Return ``cards`` ordered for ``viewer_role`` (input is not modified)."""
    role = ActorRole.parse(viewer_role)
    return sorted(cards, key=lambda c: sort_key(c, role))


def compare(a: CardView, b: CardView, viewer_role) -> int:
    """Three-way comparison; 0 means the inputs keep their relative order."""
    role = ActorRole.parse(viewer_role)
    ka, kb = sort_key(a, role), sort_key(b, role)
    if ka < kb:
        return -1
    if ka > kb:
        return 1
    return 0
