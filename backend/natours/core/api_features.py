"""Translate request query strings into SQLAlchemy list queries.

    /tours?price[gte]=300&difficulty=easy&sort=-ratingsAverage,price&fields=name,price&page=2&limit=5

becomes a filtered, ordered, offset/limited ``Query`` plus a field
projection that the caller applies when serializing the results. Nothing
here touches the database; the caller executes the query once.
"""

import operator
import re
from datetime import datetime
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from pydantic.alias_generators import to_camel, to_snake
from sqlalchemy import Boolean, DateTime, Float, Integer, Numeric, asc, desc, inspect
from sqlalchemy.orm import Query

from natours.core.errors import AppError

RESERVED_KEYS = ("page", "sort", "limit", "fields")

COMPARISON_OPERATORS = {
    "gt": operator.gt,
    "gte": operator.ge,
    "lt": operator.lt,
    "lte": operator.le,
}

# Fields that may legitimately repeat in a query string (?duration=5&duration=9).
# Any other repeated key keeps only its last value.
MULTI_VALUE_FIELDS = {
    "duration",
    "ratings_quantity",
    "ratings_average",
    "max_group_size",
    "difficulty",
    "price",
}

FILTER_KEY = re.compile(r"^(?P<field>[A-Za-z_][A-Za-z0-9_]*)\[(?P<op>[A-Za-z]+)\]$")

DEFAULT_PAGE = 1
DEFAULT_LIMIT = 4

# Internal metadata hidden unless explicitly requested
HIDDEN_BY_DEFAULT = ("updated_at",)


def _positive_int(value: Optional[str], default: int) -> int:
    try:
        number = int(value)
    except (TypeError, ValueError):
        return default
    return number if number > 0 else default


def normalize_query_string(query_string: Any) -> Dict[str, List[str]]:
    """Turn Starlette QueryParams or a plain mapping into ``{key: [values]}``."""
    if hasattr(query_string, "multi_items"):
        items: Iterable[Tuple[str, Any]] = query_string.multi_items()
    else:
        items = query_string.items()

    normalized: Dict[str, List[str]] = {}
    for key, value in items:
        values = value if isinstance(value, (list, tuple)) else [value]
        normalized.setdefault(key, []).extend(str(v) for v in values)
    return normalized


class APIFeatures:
    """Chainable query refinement: ``APIFeatures(...).filter().sort().limit_fields().paginate()``."""

    def __init__(
        self,
        query: Query,
        query_string: Any,
        model: type,
        public_fields: Iterable[str],
    ):
        self.query = query
        self.query_string = normalize_query_string(query_string)
        self.model = model
        self.public_fields = set(public_fields)
        self.columns = dict(inspect(model).columns.items())
        self.fields: Optional[List[str]] = None

    # ------------------------------------------------------------ helpers

    def _last(self, key: str) -> Optional[str]:
        values = self.query_string.get(key)
        return values[-1] if values else None

    def _resolve_column(self, name: str):
        attribute = to_snake(name.strip())
        if attribute not in self.columns or attribute not in self.public_fields:
            raise AppError(f"invalid field : {name}", 400)
        return attribute, getattr(self.model, attribute)

    def _coerce(self, attribute: str, value: str) -> Any:
        column_type = self.columns[attribute].type
        try:
            if isinstance(column_type, Boolean):
                lowered = value.lower()
                if lowered in ("true", "1"):
                    return True
                if lowered in ("false", "0"):
                    return False
                raise ValueError(value)
            if isinstance(column_type, Integer):
                number = float(value)
                return int(number) if number.is_integer() else number
            if isinstance(column_type, (Float, Numeric)):
                return float(value)
            if isinstance(column_type, DateTime):
                return datetime.fromisoformat(value)
        except ValueError:
            raise AppError(f"invalid {to_camel(attribute)} : {value}", 400)
        return value

    # ------------------------------------------------------------ stages

    def filter(self) -> "APIFeatures":
        criteria = []
        for key, values in self.query_string.items():
            if key in RESERVED_KEYS:
                continue

            match = FILTER_KEY.match(key)
            if match:
                op_name = match.group("op")
                if op_name not in COMPARISON_OPERATORS:
                    raise AppError(f"invalid filter operator : {op_name}", 400)
                attribute, column = self._resolve_column(match.group("field"))
                value = self._coerce(attribute, values[-1])
                criteria.append(COMPARISON_OPERATORS[op_name](column, value))
                continue

            attribute, column = self._resolve_column(key)
            if attribute in MULTI_VALUE_FIELDS and len(values) > 1:
                criteria.append(column.in_([self._coerce(attribute, v) for v in values]))
            else:
                criteria.append(column == self._coerce(attribute, values[-1]))

        if criteria:
            self.query = self.query.filter(*criteria)
        return self

    def sort(self) -> "APIFeatures":
        sort_by = self._last("sort")
        if sort_by:
            order = []
            for key in sort_by.split(","):
                key = key.strip()
                if not key:
                    continue
                direction = desc if key.startswith("-") else asc
                _, column = self._resolve_column(key.lstrip("-"))
                order.append(direction(column))
            order.append(asc(self.model.id))
            self.query = self.query.order_by(*order)
        else:
            # newest first
            self.query = self.query.order_by(desc(self.model.created_at), desc(self.model.id))
        return self

    def limit_fields(self) -> "APIFeatures":
        requested = self._last("fields")
        if requested:
            fields = ["id"]
            for name in requested.split(","):
                name = to_snake(name.strip())
                if not name:
                    continue
                if name not in self.public_fields:
                    raise AppError(f"invalid field : {to_camel(name)}", 400)
                if name not in fields:
                    fields.append(name)
            self.fields = fields
        else:
            self.fields = [
                name for name in self.public_fields if name not in HIDDEN_BY_DEFAULT
            ]
        return self

    def paginate(self) -> "APIFeatures":
        page = _positive_int(self._last("page"), DEFAULT_PAGE)
        limit = _positive_int(self._last("limit"), DEFAULT_LIMIT)
        skip = (page - 1) * limit

        self.query = self.query.offset(skip).limit(limit)
        return self


def with_defaults(query_string: Any, defaults: Mapping[str, str]) -> Dict[str, List[str]]:
    """Overlay preset parameters (used by alias routes) on a request query string."""
    merged = normalize_query_string(query_string)
    for key, value in defaults.items():
        merged[key] = [value]
    return merged
