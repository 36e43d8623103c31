"""
Query-string to MongoDB query translation for product search.

    GET /products?category=home&price>=10&sort=-price&fields=name,price&offset=20&limit=10

Terms are `&` separated. Reserved keys (fields, omit, sort, offset, limit)
shape the result page; every other term becomes a filter criterion:

    key=value         equality (comma list -> $in)
    key!=value        $ne (comma list -> $nin)
    key>v key>=v      $gt / $gte
    key<v key<=v      $lt / $lte
    key / !key        $exists true / false
    key=/pat/i        $regex

The `name` criterion is always a case-insensitive substring match of the
raw value. Keys naming a Mongo operator ($where, $expr, ...) are rejected.
"""

import logging
import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import quote, unquote_plus

logger = logging.getLogger(__name__)

RESERVED_KEYS = {"fields", "omit", "sort", "offset", "limit"}

_TERM_RE = re.compile(r"^(!?)([^<>!=]+)(>=|<=|!=|>|<|=)?(.*)$", re.DOTALL)
_REGEX_RE = re.compile(r"^/(.*)/([imxs]*)$", re.DOTALL)
_INT_RE = re.compile(r"^[-+]?\d+$")
_FLOAT_RE = re.compile(r"^[-+]?(\d+\.\d*|\.\d+)([eE][-+]?\d+)?$")
_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}")

_OPERATORS = {">": "$gt", ">=": "$gte", "<": "$lt", "<=": "$lte"}
_FLAGS = {"i": re.IGNORECASE, "m": re.MULTILINE, "x": re.VERBOSE, "s": re.DOTALL}


def coerce(value: str) -> Any:
    if value == "true":
        return True
    if value == "false":
        return False
    if value == "null":
        return None
    if _INT_RE.match(value):
        return int(value)
    if _FLOAT_RE.match(value):
        return float(value)
    if _DATE_RE.match(value):
        try:
            return datetime.fromisoformat(value)
        except ValueError:
            return value
    return value


def _criterion(op: Optional[str], raw: str, negated: bool) -> Any:
    if op is None:
        return {"$exists": not negated}

    regex = _REGEX_RE.match(raw)
    if regex and op in ("=", "!="):
        cond = {"$regex": regex.group(1)}
        if regex.group(2):
            cond["$options"] = regex.group(2)
        if op == "=":
            return cond
        return {"$not": re.compile(regex.group(1), _pattern_flags(regex.group(2)))}

    if op in ("=", "!=") and "," in raw:
        values = [coerce(v) for v in raw.split(",")]
        return {"$in": values} if op == "=" else {"$nin": values}

    value = coerce(raw)
    if op == "=":
        return value
    if op == "!=":
        return {"$ne": value}
    return {_OPERATORS[op]: value}


def _pattern_flags(letters: str) -> int:
    flags = 0
    for letter in letters:
        flags |= _FLAGS[letter]
    return flags


def _merge(criteria: Dict[str, Any], key: str, cond: Any) -> None:
    # price>=5&price<=10 -> {"price": {"$gte": 5, "$lte": 10}}
    existing = criteria.get(key)
    if isinstance(existing, dict) and isinstance(cond, dict) and all(k.startswith("$") for k in existing):
        existing.update(cond)
    else:
        criteria[key] = cond


def name_condition(raw: str) -> Dict[str, Any]:
    """Case-insensitive substring regex built from the raw, uncoerced value.

    A /pattern/ value keeps its pattern; anything else is matched literally.
    """
    regex = _REGEX_RE.match(raw)
    if regex:
        return {"$regex": regex.group(1), "$options": "i"}
    return {"$regex": re.escape(raw), "$options": "i"}


@dataclass
class ProductQuery:
    criteria: Dict[str, Any] = field(default_factory=dict)
    projection: Optional[Dict[str, int]] = None
    sort: List[Tuple[str, int]] = field(default_factory=list)
    skip: int = 0
    limit: int = 0
    terms: List[Tuple[str, str]] = field(default_factory=list)

    @property
    def name_criteria(self) -> Dict[str, Any]:
        if "name" in self.criteria:
            return {"name": self.criteria["name"]}
        return {}

    def _url(self, base_url: str, offset: int) -> str:
        parts = [t for k, t in self.terms if k not in ("offset", "limit")]
        parts.append(f"offset={offset}")
        parts.append(f"limit={self.limit}")
        return f"{base_url}?{'&'.join(parts)}"

    def links(self, base_url: str, total: int) -> Dict[str, Optional[str]]:
        """Absolute next/previous page URLs; None where there is no such page."""
        links = {"next": None, "previous": None}
        if not self.limit:
            return links
        if self.skip + self.limit < total:
            links["next"] = self._url(base_url, self.skip + self.limit)
        if self.skip > 0:
            links["previous"] = self._url(base_url, max(0, self.skip - self.limit))
        return links


def _parse_int(key: str, raw: str) -> int:
    try:
        value = int(raw)
    except ValueError:
        raise ValueError(f"'{key}' must be an integer, got '{raw}'")
    if value < 0:
        raise ValueError(f"'{key}' must not be negative")
    return value


def _check_field(name: str) -> str:
    # operator keys ($where, $expr, ...) never reach the store
    if any(part.startswith("$") for part in name.split(".")):
        raise ValueError(f"'{name}' is not a queryable field")
    return name


def _field_list(raw: str) -> List[str]:
    names = [f.strip() for f in raw.split(",") if f.strip()]
    for name in names:
        _check_field(name.lstrip("+-"))
    return names


def parse_query(query_string: str) -> Optional[ProductQuery]:
    """Translate a raw query string.

    Returns None when the query string holds no parameter at all: that is
    a request to list every product, not a search with an empty filter.
    Raises ValueError on malformed pagination values and on operator keys.
    """
    if not query_string:
        return None

    query = ProductQuery()
    include: Dict[str, int] = {}
    exclude: Dict[str, int] = {}

    for term in query_string.split("&"):
        if not term:
            continue
        decoded = unquote_plus(term)
        match = _TERM_RE.match(decoded)
        if not match:
            continue
        negated, key, op, raw = match.groups()
        key = key.strip()
        if not key:
            continue
        _check_field(key)
        query.terms.append((key, _encode_term(decoded)))

        if key == "name":
            query.criteria["name"] = name_condition(raw if op else "")
            continue

        if key in RESERVED_KEYS and op == "=":
            if key == "fields":
                for name in _field_list(raw):
                    if name.startswith("-"):
                        exclude[name[1:]] = 0
                    else:
                        include[name.lstrip("+")] = 1
            elif key == "omit":
                for name in _field_list(raw):
                    exclude[name] = 0
            elif key == "sort":
                for name in _field_list(raw):
                    if name.startswith("-"):
                        query.sort.append((name[1:], -1))
                    else:
                        query.sort.append((name.lstrip("+"), 1))
            elif key == "offset":
                query.skip = _parse_int(key, raw)
            elif key == "limit":
                query.limit = _parse_int(key, raw)
            continue

        _merge(query.criteria, key, _criterion(op, raw, bool(negated)))

    if not query.terms:
        return None

    # Mongo refuses mixed inclusion/exclusion projections; inclusion wins
    if include:
        query.projection = include
    elif exclude:
        query.projection = exclude

    if query.skip and not query.limit:
        logger.debug("offset=%d given without limit", query.skip)
    logger.debug("Translated query criteria=%s projection=%s sort=%s", query.criteria, query.projection, query.sort)
    return query


def _encode_term(decoded: str) -> str:
    # keep operators readable in generated links
    return quote(decoded, safe="=<>!,/-+:.")
