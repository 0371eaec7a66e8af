"""Pagination and free-text search parsing for catalog read queries.

Search syntax: whitespace-separated tokens. A token is either a bare
value (matched against every configured search field) or `field:value`
(matched against that field only). UUID-shaped values match by equality,
anything else by case-insensitive substring. All token clauses are OR-ed.
"""

import re
from dataclasses import dataclass

from ingest.exceptions import InvalidQueryError

_UUID_RE = re.compile(r"^[0-9a-fA-F-]{36}$")

# Columns a search may reference, mapped to their qualified SQL names
SEARCHABLE_COLUMNS: dict[str, str] = {
    "id": "a.id",
    "external_id": "a.external_id",
    "symbol": "a.symbol",
    "name": "a.name",
    "source": "a.source",
}


@dataclass
class Pagination:
    """One page of a listing. `page` is 1-based."""

    page: int = 1
    size: int = 10

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.size

    @property
    def limit(self) -> int:
        return self.size


@dataclass
class Search:
    """A raw search term and the fields bare tokens are matched against."""

    value: str | None
    properties: list[str]


def parse_pagination(
    page: str | int | None,
    size: str | int | None,
    default_size: int = 10,
    max_size: int = 100,
) -> Pagination:
    """Validate raw page/size query values.

    Raises InvalidQueryError for non-integers, page < 1, size < 1 or
    size > max_size.
    """
    try:
        page_num = int(page) if page not in (None, "") else 1
        size_num = int(size) if size not in (None, "") else default_size
    except (TypeError, ValueError) as e:
        raise InvalidQueryError("Invalid pagination params") from e

    if page_num < 1 or size_num < 1:
        raise InvalidQueryError("Invalid pagination params")
    if size_num > max_size:
        raise InvalidQueryError(f"Invalid pagination params: Max size is {max_size}")

    return Pagination(page=page_num, size=size_num)


def parse_search(term: str | None, properties: list[str]) -> Search | None:
    """Wrap a raw search term; None when absent or empty, error when only whitespace."""
    if not term:
        return None
    if not term.strip():
        raise InvalidQueryError("Invalid search parameter: must be a non-empty string")
    return Search(value=term, properties=properties)


def _column(field: str) -> str:
    column = SEARCHABLE_COLUMNS.get(field)
    if column is None:
        raise InvalidQueryError(f"Unknown search field: {field}")
    return column


def _clause(column: str, value: str) -> tuple[str, str]:
    if _UUID_RE.match(value):
        return f"{column} = ?", value
    return f"{column} LIKE ? COLLATE NOCASE", f"%{value}%"


def build_search_clause(search: Search | None) -> tuple[str, list[str]]:
    """Translate a Search into a SQL boolean expression and its parameters.

    Returns ("", []) when there is nothing to filter on.
    """
    if search is None or not search.value:
        return "", []

    clauses: list[str] = []
    params: list[str] = []

    for token in search.value.split():
        if ":" in token:
            field, value = token.split(":", 1)
            fields = [field]
        else:
            value = token
            fields = search.properties

        for field in fields:
            sql, param = _clause(_column(field), value)
            clauses.append(sql)
            params.append(param)

    if not clauses:
        return "", []
    return "(" + " OR ".join(clauses) + ")", params
