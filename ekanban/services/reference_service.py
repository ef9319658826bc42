"""
Reference data service — accounts, products, statuses.

Plain store/retrieve with two rules worth enforcing:
  - names are required;
  - a record referenced by a kanban chain, a status chain entry or a card
    cannot be deleted (ConflictError) so no chain is left dangling.

db.session.commit() happens only in service modules, never in blueprints.
"""

from __future__ import annotations

import logging

from sqlalchemy import func, or_, select

from ekanban.core.exceptions import ConflictError, ValidationError
from ekanban.models import db
from ekanban.models.kanban import Kanban, KanbanChain, KanbanHistory
from ekanban.models.reference import Account, Product, Status
from ekanban.models.status_chain import StatusChainEntry
from ekanban.services.helpers.queries import get_or_raise

logger = logging.getLogger(__name__)


def _required_text(data: dict, field: str, max_len: int) -> str:
    value = (data.get(field) or "")
    if not isinstance(value, str):
        value = str(value)
    value = value.strip()
    if not value:
        raise ValidationError(f"{field} is required", details={field: "required"})
    if len(value) > max_len:
        raise ValidationError(
            f"{field} must be ≤ {max_len} characters", details={field: "too long"},
        )
    return value


def _count(stmt) -> int:
    return db.session.execute(stmt).scalar_one()


# ── Accounts ─────────────────────────────────────────────────────────────────


def list_accounts() -> list[dict]:
    rows = db.session.execute(select(Account).order_by(Account.name, Account.id)).scalars()
    return [a.to_dict() for a in rows]


def get_account(account_id: int) -> dict:
    return get_or_raise(Account, account_id).to_dict()


def create_account(data: dict) -> dict:
    account = Account(
        name=_required_text(data, "name", 200),
        vat_number=(data.get("vat_number") or "").strip(),
        address=(data.get("address") or "").strip(),
    )
    db.session.add(account)
    db.session.commit()
    logger.info("Account created id=%s", account.id)
    return account.to_dict()


def update_account(account_id: int, data: dict) -> dict:
    account = get_or_raise(Account, account_id)
    if "name" in data:
        account.name = _required_text(data, "name", 200)
    for field in ("vat_number", "address"):
        if field in data:
            setattr(account, field, (data.get(field) or "").strip())
    db.session.commit()
    return account.to_dict()


def delete_account(account_id: int) -> None:
    account = get_or_raise(Account, account_id)
    in_use = _count(
        select(func.count(KanbanChain.id)).where(
            or_(KanbanChain.customer_id == account_id, KanbanChain.supplier_id == account_id)
        )
    )
    if in_use:
        raise ConflictError(
            f"Account id={account_id} is referenced by {in_use} kanban chain(s)",
            resource="Account",
        )
    db.session.delete(account)
    db.session.commit()
    logger.info("Account deleted id=%s", account_id)


# ── Products ─────────────────────────────────────────────────────────────────


def list_products() -> list[dict]:
    rows = db.session.execute(select(Product).order_by(Product.name, Product.product_id)).scalars()
    return [p.to_dict() for p in rows]


def get_product(product_id: str) -> dict:
    return get_or_raise(Product, product_id).to_dict()


def create_product(data: dict) -> dict:
    code = _required_text(data, "product_id", 64)
    if db.session.get(Product, code) is not None:
        raise ConflictError(f"Product with product_id={code!r} already exists", resource="Product")
    product = Product(product_id=code, name=_required_text(data, "name", 200))
    db.session.add(product)
    db.session.commit()
    logger.info("Product created product_id=%s", code)
    return product.to_dict()


def update_product(product_id: str, data: dict) -> dict:
    product = get_or_raise(Product, product_id)
    if "name" in data:
        product.name = _required_text(data, "name", 200)
    db.session.commit()
    return product.to_dict()


def delete_product(product_id: str) -> None:
    product = get_or_raise(Product, product_id)
    in_use = _count(select(func.count(KanbanChain.id)).where(KanbanChain.product_id == product_id))
    if in_use:
        raise ConflictError(
            f"Product {product_id!r} is referenced by {in_use} kanban chain(s)",
            resource="Product",
        )
    db.session.delete(product)
    db.session.commit()
    logger.info("Product deleted product_id=%s", product_id)


# ── Statuses ─────────────────────────────────────────────────────────────────


def list_statuses() -> list[dict]:
    rows = db.session.execute(select(Status).order_by(Status.status_id)).scalars()
    return [s.to_dict() for s in rows]


def get_status(status_id: int) -> dict:
    return get_or_raise(Status, status_id).to_dict()


def create_status(data: dict) -> dict:
    status = Status(
        name=_required_text(data, "name", 100),
        color=(data.get("color") or "#999999").strip(),
    )
    db.session.add(status)
    db.session.commit()
    logger.info("Status created status_id=%s", status.status_id)
    return status.to_dict()


def update_status(status_id: int, data: dict) -> dict:
    """Rename / recolour a status. Allowed even while chains reference it."""
    status = get_or_raise(Status, status_id)
    if "name" in data:
        status.name = _required_text(data, "name", 100)
    if "color" in data:
        status.color = (data.get("color") or "#999999").strip()
    db.session.commit()
    return status.to_dict()


def delete_status(status_id: int) -> None:
    """Delete a status that no status chain, card or history row references."""
    status = get_or_raise(Status, status_id)
    in_chains = _count(
        select(func.count()).select_from(StatusChainEntry).where(StatusChainEntry.status_id == status_id)
    )
    on_cards = _count(select(func.count(Kanban.id)).where(Kanban.current_status_id == status_id))
    in_history = _count(
        select(func.count(KanbanHistory.id)).where(
            or_(KanbanHistory.previous_status_id == status_id, KanbanHistory.next_status_id == status_id)
        )
    )
    if in_chains or on_cards or in_history:
        raise ConflictError(
            f"Status id={status_id} is referenced by {in_chains} status chain entr(ies), "
            f"{on_cards} kanban(s) and {in_history} history row(s)",
            resource="Status",
            details={
                "status_chain_entries": in_chains,
                "kanbans": on_cards,
                "history": in_history,
            },
        )
    db.session.delete(status)
    db.session.commit()
    logger.info("Status deleted status_id=%s", status_id)
