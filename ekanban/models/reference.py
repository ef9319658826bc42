"""
Electronic Kanban Platform
Reference data models.

Models:
    - Account: a company acting as customer and/or supplier
    - Product: replenished article, keyed by its product code
    - Status:  a named stage with a display colour

These carry no behaviour beyond store/retrieve; kanban chains and status
chains reference them by key.
"""

from datetime import datetime, timezone

from ekanban.models import db


class Account(db.Model):
    """A trading party. The same account may be customer in one chain and
    supplier in another."""

    __tablename__ = "accounts"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(200), nullable=False)
    vat_number = db.Column(db.String(40), default="")
    address = db.Column(db.String(300), default="")
    created_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "vat_number": self.vat_number,
            "address": self.address,
        }

    def __repr__(self):
        return f"<Account {self.id}: {self.name}>"


class Product(db.Model):
    """A product identified by its catalogue code."""

    __tablename__ = "products"

    product_id = db.Column(db.String(64), primary_key=True, comment="Catalogue code, e.g. P-1001")
    name = db.Column(db.String(200), nullable=False)

    def to_dict(self):
        return {"product_id": self.product_id, "name": self.name}

    def __repr__(self):
        return f"<Product {self.product_id}: {self.name}>"


class Status(db.Model):
    """A stage a kanban card can sit in. Colour is a CSS colour string."""

    __tablename__ = "statuses"

    status_id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    color = db.Column(db.String(30), default="#999999")

    def to_dict(self):
        return {"status_id": self.status_id, "name": self.name, "color": self.color}

    def __repr__(self):
        return f"<Status {self.status_id}: {self.name}>"
