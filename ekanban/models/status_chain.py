"""
Electronic Kanban Platform
Status chain domain models.

Models:
    - StatusChain:       a named, ordered sequence of statuses
    - StatusChainEntry:  one position in that sequence, tagged with the role
                         allowed to move a card out of it

Architecture chain: StatusChain → StatusChainEntry → Status
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import IntEnum

from ekanban.models import db


class ActorRole(IntEnum):
    """Who may push a card out of a status.

    The integer values are the wire codes used by ``customer_supplier``.
    """

    SUPPLIER = 1
    CUSTOMER = 2

    @classmethod
    def parse(cls, value) -> "ActorRole":
        """Accept 1/2, "1"/"2" or "supplier"/"customer" (any case).

        Raises:
            ValueError: for anything else.
        """
        if isinstance(value, cls):
            return value
        if isinstance(value, bool) or value is None:
            raise ValueError(f"invalid actor role: {value!r}")
        if isinstance(value, int):
            return cls(value)
        text = str(value).strip()
        if text.isdigit():
            return cls(int(text))
        try:
            return cls[text.upper()]
        except KeyError:
            raise ValueError(f"invalid actor role: {value!r}") from None

    @property
    def label(self) -> str:
        return self.name.lower()


class StatusChain(db.Model):
    """A reusable progression template bound to kanban chains."""

    __tablename__ = "status_chains"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(150), nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    entries = db.relationship(
        "StatusChainEntry",
        back_populates="status_chain",
        cascade="all, delete-orphan",
        order_by="StatusChainEntry.order",
        lazy="selectin",
    )

    def to_dict(self, include_entries=False):
        result = {"id": self.id, "name": self.name}
        if include_entries:
            result["entries"] = [e.to_dict() for e in self.entries]
        return result

    def __repr__(self):
        return f"<StatusChain {self.id}: {self.name}>"


class StatusChainEntry(db.Model):
    """One step of a status chain.

    ``order`` is unique within the chain and defines the succession used by
    the kanban lifecycle; ``actor_role`` names who may advance a card *out*
    of this step.
    """

    __tablename__ = "status_chain_entries"
    __table_args__ = (
        db.UniqueConstraint("status_chain_id", "order", name="uq_status_chain_entry_order"),
        db.CheckConstraint('"order" > 0', name="ck_status_chain_entry_order_positive"),
    )

    status_chain_id = db.Column(
        db.Integer, db.ForeignKey("status_chains.id", ondelete="CASCADE"), primary_key=True,
    )
    status_id = db.Column(
        db.Integer, db.ForeignKey("statuses.status_id", ondelete="RESTRICT"), primary_key=True,
    )
    order = db.Column(db.Integer, nullable=False)
    actor_role = db.Column(db.Integer, nullable=False, comment="1=supplier, 2=customer")

    status_chain = db.relationship("StatusChain", back_populates="entries")
    status = db.relationship("Status", lazy="joined")

    @property
    def role(self) -> ActorRole:
        return ActorRole(self.actor_role)

    def to_dict(self):
        return {
            "status_id": self.status_id,
            "status_name": self.status.name if self.status else None,
            "status_color": self.status.color if self.status else None,
            "order": self.order,
            "actor_role": self.actor_role,
        }

    def __repr__(self):
        return f"<StatusChainEntry chain={self.status_chain_id} status={self.status_id} order={self.order}>"
