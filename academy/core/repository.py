"""
Shared persistence helpers used by the feature services.

- next_order: append-with-computed-order for ordered children
- toggle_pair: toggle-create-or-delete for uniquely keyed join rows
- delete_in_order: explicit ordered cascade inside one transaction
- descendant_ids: a threaded row plus all of its replies
- reject_nulls: explicit nulls aimed at NOT NULL columns are a 400
"""
import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from sqlalchemy import Table, and_, delete, func, insert, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from sqlalchemy.sql.dml import Delete

from academy.core.database import get_db_session, new_id
from academy.core.errors import ValidationError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ToggleResult:
    """Outcome of a toggle.

    active: whether the row exists after the call.
    created: whether this call inserted it (False when a concurrent caller won).
    """
    active: bool
    created: bool


def next_order(session: Session, table: Table, parent_column: str, parent_id: str, order_column: str = "position") -> int:
    """max(order) + 1 among the parent's children, or 0 for the first child."""
    current = session.execute(
        select(func.max(table.c[order_column])).where(table.c[parent_column] == parent_id)
    ).scalar()
    return 0 if current is None else current + 1


def resolve_order(session: Session, table: Table, parent_column: str, parent_id: str, requested: Optional[int]) -> int:
    """A caller-supplied order always wins over the computed one."""
    if requested is not None:
        return requested
    return next_order(session, table, parent_column, parent_id)


def toggle_pair(table: Table, key: Mapping[str, Any]) -> ToggleResult:
    """Delete the row matching `key` if present, otherwise insert it.

    The delete and the insert run in separate transactions. A unique
    violation on insert means a concurrent request created the row first;
    that is reported as active without being created here.
    """
    match = and_(*[table.c[column] == value for column, value in key.items()])

    with get_db_session() as session:
        removed = session.execute(delete(table).where(match)).rowcount
    if removed:
        return ToggleResult(active=False, created=False)

    try:
        with get_db_session() as session:
            session.execute(insert(table).values(id=new_id(), **key))
    except IntegrityError:
        logger.info(f"toggle.race table={table.name}")
        return ToggleResult(active=True, created=False)
    return ToggleResult(active=True, created=True)


def delete_in_order(session: Session, steps: Iterable[Tuple[str, Delete]]) -> Dict[str, int]:
    """Run labelled delete statements in sequence; returns rows removed per label.

    Dependents must come before their parents; the caller's session scope
    makes the whole sequence one transaction.
    """
    removed: Dict[str, int] = {}
    for label, statement in steps:
        removed[label] = session.execute(statement).rowcount
    return removed


def descendant_ids(session: Session, table: Table, root_id: str, parent_column: str = "parent_id") -> List[str]:
    """root_id plus every row reachable through the self-referencing parent column."""
    found = [root_id]
    frontier = [root_id]
    while frontier:
        frontier = list(session.execute(select(table.c.id).where(table.c[parent_column].in_(frontier))).scalars())
        found.extend(frontier)
    return found


def reject_nulls(table: Table, values: Mapping[str, Any]) -> None:
    """Raise ValidationError when a partial update nulls a NOT NULL column."""
    for key, value in values.items():
        if value is None and key in table.c and not table.c[key].nullable:
            raise ValidationError(f"{key} cannot be null")
