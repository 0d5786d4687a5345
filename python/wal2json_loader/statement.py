"""Multi-row INSERT statements built from committed batches."""

from typing import Any, List, Tuple

from .accumulator import Batch


def quote_ident(name: str) -> str:
    """
    Quote a PostgreSQL identifier.

    The name is wrapped in double quotes with embedded quotes doubled, so any
    content is taken literally as a single identifier.

    Raises:
        ValueError: If the name is empty or contains a NUL character
    """
    if not name:
        raise ValueError("empty identifier")
    if "\x00" in name:
        raise ValueError(f"identifier contains NUL: {name!r}")
    return '"' + name.replace('"', '""') + '"'


def build_insert(batch: Batch) -> Tuple[str, List[Any]]:
    """
    Build one parameterized INSERT covering every row of a batch.

    Args:
        batch: A committed batch with at least one row

    Returns:
        (statement, params) where params is row-major and statement uses
        $1..$N placeholders in the same order

    Example:
        >>> build_insert(batch)
        ('INSERT INTO "s"."t" ("id", "name") VALUES ($1, $2), ($3, $4)', [1, 'a', 2, 'b'])
    """
    if not batch.rows:
        raise ValueError(f"cannot build an insert for {batch.qualified_name} with no rows")
    if not batch.column_names:
        raise ValueError(f"cannot build an insert for {batch.qualified_name} with no columns")

    target = f"{quote_ident(batch.schema)}.{quote_ident(batch.table)}"
    columns = ", ".join(quote_ident(name) for name in batch.column_names)
    width = len(batch.column_names)

    tuples = []
    params: List[Any] = []
    for row in batch.rows:
        if len(row) != width:
            raise ValueError(f"row has {len(row)} values for {width} columns")
        start = len(params) + 1
        tuples.append(
            "(" + ", ".join(f"${n}" for n in range(start, start + width)) + ")"
        )
        params.extend(row)

    statement = f"INSERT INTO {target} ({columns}) VALUES {', '.join(tuples)}"
    return statement, params
