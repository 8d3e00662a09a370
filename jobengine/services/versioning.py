"""
Optimistic concurrency for status-bearing rows.

Every guarded mutation is one conditional UPDATE keyed on the row's primary
key, the version the caller loaded and (optionally) the status the guard
checked. Zero matched rows means another writer got there first.
"""

import logging
from typing import Any

from sqlalchemy import inspect, update
from sqlalchemy.orm import Session

from jobengine.core.errors import ConcurrentModificationError

logger = logging.getLogger(__name__)


def conditional_update(
    db: Session,
    entity: Any,
    values: dict[str, Any],
    *,
    expected_status: str | None = None,
) -> None:
    """
    Apply ``values`` to ``entity`` only if it is unchanged since it was loaded.

    Bumps ``version`` and refreshes ``entity`` from the database on success.
    Does not commit.

    Raises:
        ConcurrentModificationError: version or status no longer matches
    """
    model = type(entity)
    mapper = inspect(model)
    conditions = [
        column == getattr(entity, mapper.get_property_by_column(column).key)
        for column in mapper.primary_key
    ]
    conditions.append(model.version == entity.version)
    if expected_status is not None:
        conditions.append(model.status == expected_status)

    stmt = (
        update(model)
        .where(*conditions)
        .values(**values, version=model.version + 1)
        .execution_options(synchronize_session=False)
    )
    result = db.execute(stmt)
    if result.rowcount == 0:
        logger.info(
            "Conditional update lost race on %s (version %s)",
            model.__tablename__,
            entity.version,
        )
        raise ConcurrentModificationError(
            f"{model.__name__} was modified by another request; reload and retry"
        )
    db.refresh(entity)
