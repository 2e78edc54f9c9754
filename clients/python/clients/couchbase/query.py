from datetime import datetime
from typing import Any, Dict, Optional, Sequence, Tuple

from clients.store import Filter, Sort

_COMPARISON_OPS = {"=", "!=", "<", "<=", ">", ">="}


def _field(name: str) -> str:
    if not name.replace("_", "").isalnum():
        raise ValueError(f"Invalid field name for query: {name!r}")
    return f"d.`{name}`"


def build_select(
    keyspace: str,
    filters: Sequence[Filter] = (),
    sort: Optional[Sort] = None,
    limit: Optional[int] = None,
) -> Tuple[str, Dict[str, Any]]:
    """Build a parameterised N1QL SELECT over one keyspace.

    Datetime operands are compared as epoch millis via ``STR_TO_MILLIS`` since
    documents store timestamps as ISO-8601 strings.
    """
    conditions = []
    params: Dict[str, Any] = {}

    for i, flt in enumerate(filters):
        param = f"p{i}"
        if flt.op == "in":
            conditions.append(f"{_field(flt.field)} IN ${param}")
            params[param] = list(flt.value)
        elif flt.op in _COMPARISON_OPS:
            if isinstance(flt.value, datetime):
                conditions.append(f"STR_TO_MILLIS({_field(flt.field)}) {flt.op} ${param}")
                params[param] = int(flt.value.timestamp() * 1000)
            elif flt.value is None and flt.op in ("=", "!="):
                conditions.append(
                    f"{_field(flt.field)} IS {'NOT ' if flt.op == '!=' else ''}NULL"
                )
            else:
                conditions.append(f"{_field(flt.field)} {flt.op} ${param}")
                params[param] = flt.value
        else:
            raise ValueError(f"Unsupported filter operator: {flt.op}")

    query = f"SELECT META(d).id AS id, META(d).cas AS cas, d AS doc FROM {keyspace} AS d"
    if conditions:
        query += " WHERE " + " AND ".join(conditions)
    if sort is not None:
        query += f" ORDER BY {_field(sort.field)} {'DESC' if sort.descending else 'ASC'}"
    if limit is not None:
        query += f" LIMIT {int(limit)}"
    return query, params
