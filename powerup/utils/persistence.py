from sqlalchemy import select
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db


def get_active(model, row_id):
    """Fetch a row by primary key, skipping soft-deleted ones."""
    stmt = select(model).where(model.id == row_id, model.not_deleted())
    return db.session.scalar(stmt)


def list_rows(model, include_deleted=False, order_by=None):
    stmt = select(model)
    if not include_deleted:
        stmt = stmt.where(model.not_deleted())
    stmt = stmt.order_by(order_by if order_by is not None else model.id)
    return db.session.scalars(stmt).all()


def row_exists(model, row_id) -> bool:
    return db.session.get(model, row_id) is not None


def commit_update(model, row_id) -> bool:
    """
    Commit pending changes to ``model`` row ``row_id``.

    Returns False when the row disappeared under a concurrent writer. Any
    other stale-data failure is re-raised. Last writer wins otherwise.
    """
    try:
        db.session.commit()
    except StaleDataError:
        db.session.rollback()
        if not row_exists(model, row_id):
            return False
        raise
    return True


def id_mismatch(path_id, data) -> bool:
    return data.get("id") != path_id
