"""Column name de-duplication for result rows."""

from __future__ import annotations

from typing import Any, Iterable, Sequence

from .models import RawRow


def unique_column_names(names: Sequence[str]) -> tuple[str, ...]:
    """Return ``names`` with later duplicates suffixed ``_1``, ``_2``, ...

    The first occurrence keeps its name. A candidate suffix is skipped when
    it already names another column, so the output is always unique.
    """

    taken = set(names)
    seen: set[str] = set()
    counters: dict[str, int] = {}
    result: list[str] = []
    for name in names:
        if name not in seen:
            seen.add(name)
            result.append(name)
            continue
        index = counters.get(name, 0)
        while True:
            index += 1
            candidate = f"{name}_{index}"
            if candidate not in taken:
                break
        counters[name] = index
        taken.add(candidate)
        seen.add(candidate)
        result.append(candidate)
    return tuple(result)


def normalize_column_names(rows: Iterable[RawRow]) -> list[dict[str, Any]]:
    """Convert rows into dicts whose keys are unique within every row.

    asyncpg records keep duplicate column names (``SELECT a.id, b.id``);
    plain dict rows already have unique keys and come back unchanged.
    """

    normalized: list[dict[str, Any]] = []
    shapes: dict[tuple[str, ...], tuple[str, ...]] = {}
    for row in rows:
        items = list(row.items())
        names = tuple(str(name) for name, _ in items)
        unique = shapes.get(names)
        if unique is None:
            unique = shapes[names] = unique_column_names(names)
        normalized.append({name: value for name, (_, value) in zip(unique, items)})
    return normalized


__all__ = ["normalize_column_names", "unique_column_names"]
