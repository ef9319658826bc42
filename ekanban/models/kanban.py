"""
Electronic Kanban Platform
Kanban domain models.

Models:
    - KanbanChain:    customer/supplier/product agreement bound to a status chain
    - Kanban:         one physical card cycling through the chain's statuses
    - KanbanHistory:  append-only record of every status transition

Architecture chain: StatusChain → KanbanChain → Kanban → KanbanHistory

Cards are never deleted while their chain lives; shrinking a chain retires
cards (is_active=False) so their history is preserved.
"""

from datetime import datetime, timezone

from ekanban.models import db


def _utcnow():
    return datetime.now(timezone.utc)


# ── Constants ────────────────────────────────────────────────────────────────

# Fields the owner of an agreement may change after creation.
MUTABLE_CHAIN_FIELDS = ("lead_time_days", "quantity", "container_type")

# Fields fixed at creation: changing them would invalidate in-flight cards.
IMMUTABLE_CHAIN_FIELDS = ("customer_id", "supplier_id", "product_id", "status_chain_id")


# ═══════════════════════════════════════════════════════════════════════════
#  KANBAN CHAIN
# ═══════════════════════════════════════════════════════════════════════════

class KanbanChain(db.Model):
    """
    Replenishment agreement between a customer and a supplier for a product.

    ``active_card_count`` is maintained in the same transaction as card
    creation and retirement and always equals the number of active cards.
    """

    __tablename__ = "kanban_chains"
    __table_args__ = (
        db.CheckConstraint("active_card_count >= 0", name="ck_kanban_chain_active_count"),
    )

    id = db.Column(db.Integer, primary_key=True)
    customer_id = db.Column(
        db.Integer, db.ForeignKey("accounts.id", ondelete="RESTRICT"), nullable=False, index=True,
    )
    supplier_id = db.Column(
        db.Integer, db.ForeignKey("accounts.id", ondelete="RESTRICT"), nullable=False, index=True,
    )
    product_id = db.Column(
        db.String(64), db.ForeignKey("products.product_id", ondelete="RESTRICT"), nullable=False, index=True,
    )
    status_chain_id = db.Column(
        db.Integer, db.ForeignKey("status_chains.id", ondelete="RESTRICT"), nullable=False, index=True,
    )
    lead_time_days = db.Column(db.Integer, nullable=False, default=0)
    quantity = db.Column(db.Float, nullable=False, default=0)
    container_type = db.Column(db.String(100), default="")
    active_card_count = db.Column(db.Integer, nullable=False, default=0)

    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    customer = db.relationship("Account", foreign_keys=[customer_id], lazy="joined")
    supplier = db.relationship("Account", foreign_keys=[supplier_id], lazy="joined")
    product = db.relationship("Product", lazy="joined")
    status_chain = db.relationship("StatusChain")

    kanbans = db.relationship(
        "Kanban", back_populates="kanban_chain", cascade="all, delete-orphan", lazy="dynamic",
    )

    def to_dict(self):
        return {
            "id": self.id,
            "customer_id": self.customer_id,
            "customer_name": self.customer.name if self.customer else None,
            "supplier_id": self.supplier_id,
            "supplier_name": self.supplier.name if self.supplier else None,
            "product_id": self.product_id,
            "product_name": self.product.name if self.product else None,
            "status_chain_id": self.status_chain_id,
            "lead_time_days": self.lead_time_days,
            "quantity": self.quantity,
            "container_type": self.container_type,
            "active_card_count": self.active_card_count,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }

    def __repr__(self):
        return f"<KanbanChain {self.id}: {self.product_id} {self.customer_id}<-{self.supplier_id}>"


# ═══════════════════════════════════════════════════════════════════════════
#  KANBAN (physical card)
# ═══════════════════════════════════════════════════════════════════════════

class Kanban(db.Model):
    """
    A single card. ``current_status_id`` must be a status of the chain's
    status-chain definition; lead time, container type and quantity mirror
    the owning chain.
    """

    __tablename__ = "kanbans"
    __table_args__ = (
        db.Index("ix_kanbans_chain_active", "kanban_chain_id", "is_active"),
    )

    id = db.Column(db.Integer, primary_key=True)
    kanban_chain_id = db.Column(
        db.Integer, db.ForeignKey("kanban_chains.id", ondelete="CASCADE"), nullable=False,
    )
    current_status_id = db.Column(
        db.Integer, db.ForeignKey("statuses.status_id", ondelete="RESTRICT"), nullable=False, index=True,
    )
    lead_time_days = db.Column(db.Integer, nullable=False, default=0)
    container_type = db.Column(db.String(100), default="")
    quantity = db.Column(db.Float, nullable=False, default=0)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    last_updated = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow)
    retired_at = db.Column(db.DateTime(timezone=True), nullable=True)

    kanban_chain = db.relationship("KanbanChain", back_populates="kanbans")
    current_status = db.relationship("Status", lazy="joined")
    history = db.relationship(
        "KanbanHistory",
        back_populates="kanban",
        cascade="all, delete-orphan",
        order_by="KanbanHistory.id.desc()",
    )

    def to_dict(self):
        return {
            "id": self.id,
            "kanban_chain_id": self.kanban_chain_id,
            "current_status_id": self.current_status_id,
            "lead_time_days": self.lead_time_days,
            "container_type": self.container_type,
            "quantity": self.quantity,
            "is_active": self.is_active,
            "last_updated": self.last_updated.isoformat() if self.last_updated else None,
            "retired_at": self.retired_at.isoformat() if self.retired_at else None,
        }

    def __repr__(self):
        return f"<Kanban {self.id} chain={self.kanban_chain_id} status={self.current_status_id}>"


# ═══════════════════════════════════════════════════════════════════════════
#  KANBAN HISTORY
# ═══════════════════════════════════════════════════════════════════════════

class KanbanHistory(db.Model):
    """One row per status transition, written with the transition itself."""

    __tablename__ = "kanban_histories"

    id = db.Column(db.Integer, primary_key=True)
    kanban_id = db.Column(
        db.Integer, db.ForeignKey("kanbans.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    previous_status_id = db.Column(db.Integer, db.ForeignKey("statuses.status_id"), nullable=True)
    next_status_id = db.Column(db.Integer, db.ForeignKey("statuses.status_id"), nullable=False)
    actor_role = db.Column(db.Integer, nullable=True, comment="Role that moved the card; null for admin moves")
    changed_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow)

    kanban = db.relationship("Kanban", back_populates="history")

    def to_dict(self):
        return {
            "id": self.id,
            "kanban_id": self.kanban_id,
            "previous_status_id": self.previous_status_id,
            "next_status_id": self.next_status_id,
            "actor_role": self.actor_role,
            "changed_at": self.changed_at.isoformat() if self.changed_at else None,
        }
