"""
Lookup helpers shared by the service layer.

Every get-by-key in the services goes through these helpers so a missing
record always surfaces as ``NotFoundError`` (HTTP 404) instead of a stray
``None`` further down the call chain.

Usage:
    chain = get_or_raise(KanbanChain, chain_id)
    card = get_or_raise(Kanban, kanban_id, for_update=True)
"""

import logging

from sqlalchemy import select
from sqlalchemy.orm import lazyload

from ekanban.core.exceptions import NotFoundError
from ekanban.models import db

logger = logging.getLogger(__name__)


def locked_select(model, pk):
    """``SELECT ... FOR UPDATE OF <table>`` for one row of ``model``.

    Joined eager loads are switched off: PostgreSQL refuses FOR UPDATE on
    the nullable side of the LEFT OUTER JOINs they would add.
    """
    pk_col = model.__mapper__.primary_key[0]
    return (
        select(model)
        .options(lazyload("*"))
        .where(pk_col == pk)
        .with_for_update(of=model)
    )


def get_or_none(model, pk, *, for_update: bool = False):
    """Fetch a single entity by primary key, or None.

    ``for_update`` issues ``SELECT ... FOR UPDATE`` on backends that
    support row locks (PostgreSQL); SQLite ignores it and serializes
    writers at the database level instead.
    """
    if pk is None:
        return None
    if not for_update:
        return db.session.get(model, pk)
    return db.session.execute(locked_select(model, pk)).scalar_one_or_none()


def get_or_raise(model, pk, *, label: str | None = None, for_update: bool = False):
    """Fetch a single entity by primary key or raise NotFoundError."""
    obj = get_or_none(model, pk, for_update=for_update)
    if obj is None:
        label = label or model.__name__
        logger.debug("Lookup miss model=%s pk=%s", label, pk)
        raise NotFoundError(resource=label, resource_id=pk)
    return obj
