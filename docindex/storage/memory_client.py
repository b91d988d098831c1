"""
In-process backend evaluating the RediSearch query subset the translator emits.

Supports tag sets, numeric ranges, geo radius, phrases, ``*``, negation,
unions, intersections and parentheses. Text matching is case-insensitive
without stemming. Used for tests and local runs without Redis Stack.
"""

import copy
import json
import math
import re
from typing import Any, Dict, List, Optional, Tuple

from ..errors import BackendError, IndexAlreadyExists, IndexNotFound
from ..models.base import DistanceUnit, FieldKind
from ..models.index import IndexDefinition, IndexField
from ..utils.logging import get_logger
from .base import BaseBackend, SearchPage

# Earth radius RediSearch uses for geo distances, in meters
EARTH_RADIUS_M = 6372797.560856

_WORD_RE = re.compile(r"\w+", re.UNICODE)


def haversine_meters(lon1: float, lat1: float, lon2: float, lat2: float) -> float:
    """Great-circle distance between two coordinates."""
    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    d_phi = phi2 - phi1
    d_lambda = math.radians(lon2 - lon1)
    a = math.sin(d_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    return 2 * EARTH_RADIUS_M * math.asin(min(1.0, math.sqrt(a)))


class QuerySyntaxError(BackendError):
    """The query string is outside the supported syntax."""


class _QueryParser:
    """Recursive-descent parser producing nested tuples."""

    def __init__(self, text: str):
        self.text = text
        self.pos = 0

    def parse(self) -> tuple:
        node = self._union()
        self._skip_ws()
        if self.pos != len(self.text):
            raise self._error("Unexpected input")
        return node

    def _error(self, message: str) -> QuerySyntaxError:
        return QuerySyntaxError(f"{message} at offset {self.pos} in {self.text!r}", operation="search")

    def _peek(self) -> Optional[str]:
        return self.text[self.pos] if self.pos < len(self.text) else None

    def _skip_ws(self) -> None:
        while self.pos < len(self.text) and self.text[self.pos].isspace():
            self.pos += 1

    def _expect(self, char: str) -> None:
        self._skip_ws()
        if self._peek() != char:
            raise self._error(f"Expected {char!r}")
        self.pos += 1

    def _union(self) -> tuple:
        parts = [self._intersection()]
        while True:
            self._skip_ws()
            if self._peek() != "|":
                break
            self.pos += 1
            parts.append(self._intersection())
        return ("or", parts) if len(parts) > 1 else parts[0]

    def _intersection(self) -> tuple:
        parts = []
        while True:
            self._skip_ws()
            char = self._peek()
            if char is None or char in ")|":
                break
            parts.append(self._unary())
        if not parts:
            raise self._error("Empty expression")
        return ("and", parts) if len(parts) > 1 else parts[0]

    def _unary(self) -> tuple:
        self._skip_ws()
        char = self._peek()
        if char == "-":
            self.pos += 1
            return ("not", self._unary())
        if char == "(":
            self.pos += 1
            node = self._union()
            self._expect(")")
            return node
        if char == "*":
            self.pos += 1
            return ("all",)
        if char == "@":
            self.pos += 1
            return self._field_clause()
        raise self._error("Unsupported term")

    def _field_clause(self) -> tuple:
        start = self.pos
        while self.pos < len(self.text) and (self.text[self.pos].isalnum() or self.text[self.pos] == "_"):
            self.pos += 1
        name = self.text[start:self.pos]
        if not name:
            raise self._error("Missing field name")
        self._expect(":")
        self._skip_ws()
        char = self._peek()
        if char == "{":
            self.pos += 1
            return ("tag", name, self._tag_values())
        if char == "[":
            self.pos += 1
            return self._bracket(name)
        if char == '"':
            self.pos += 1
            end = self.text.find('"', self.pos)
            if end < 0:
                raise self._error("Unterminated phrase")
            phrase = self.text[self.pos:end]
            self.pos = end + 1
            return ("text", name, [term.lower() for term in _WORD_RE.findall(phrase)])
        start = self.pos
        while self.pos < len(self.text) and (self.text[self.pos].isalnum() or self.text[self.pos] == "_"):
            self.pos += 1
        if start == self.pos:
            raise self._error("Missing field value")
        return ("text", name, [self.text[start:self.pos].lower()])

    def _tag_values(self) -> List[str]:
        values: List[str] = []
        current: List[str] = []
        while True:
            char = self._peek()
            if char is None:
                raise self._error("Unterminated tag set")
            self.pos += 1
            if char == "\\":
                escaped = self._peek()
                if escaped is None:
                    raise self._error("Dangling escape")
                current.append(escaped)
                self.pos += 1
            elif char == "|":
                values.append("".join(current).strip())
                current = []
            elif char == "}":
                values.append("".join(current).strip())
                return [value.lower() for value in values if value]
            else:
                current.append(char)

    def _bracket(self, name: str) -> tuple:
        end = self.text.find("]", self.pos)
        if end < 0:
            raise self._error("Unterminated range")
        tokens = self.text[self.pos:end].split()
        self.pos = end + 1
        if len(tokens) == 2:
            low, low_exclusive = self._bound(tokens[0])
            high, high_exclusive = self._bound(tokens[1])
            return ("range", name, low, low_exclusive, high, high_exclusive)
        if len(tokens) == 4:
            try:
                longitude, latitude, radius = (float(token) for token in tokens[:3])
                unit = DistanceUnit(tokens[3].lower())
            except ValueError as e:
                raise self._error(f"Invalid geo filter: {e}") from e
            return ("geo", name, longitude, latitude, unit.to_meters(radius))
        raise self._error("Bracket clause needs 2 or 4 values")

    def _bound(self, token: str) -> Tuple[float, bool]:
        exclusive = token.startswith("(")
        if exclusive:
            token = token[1:]
        try:
            return float(token), exclusive
        except ValueError as e:
            raise self._error(f"Invalid numeric bound {token!r}") from e


def parse_query(text: str) -> tuple:
    """Parse a query string into an evaluation tree."""
    return _QueryParser(text).parse()


def _values_at(document: Dict[str, Any], json_path: str) -> List[Any]:
    """Collect the values addressed by "$.a.b" or "$.a.b[*]"."""
    path = json_path[2:] if json_path.startswith("$.") else json_path.lstrip("$")
    expand = path.endswith("[*]")
    if expand:
        path = path[:-3]
    current: Any = document
    for segment in path.split("."):
        if not isinstance(current, dict) or segment not in current:
            return []
        current = current[segment]
    if current is None:
        return []
    if expand or isinstance(current, list):
        return [item for item in (current if isinstance(current, list) else [current]) if item is not None]
    return [current]


def _tag_tokens(value: Any) -> List[str]:
    if isinstance(value, bool):
        return ["true" if value else "false"]
    if isinstance(value, str):
        return [token.strip().lower() for token in value.split("|") if token.strip()]
    return []


def _parse_geo(value: Any) -> Optional[Tuple[float, float]]:
    if not isinstance(value, str):
        return None
    parts = value.split(",")
    if len(parts) != 2:
        return None
    try:
        return float(parts[0]), float(parts[1])
    except ValueError:
        return None


class MemoryBackend(BaseBackend):
    """Dictionary-backed store with RediSearch-style indexes and aliases."""

    name = "memory"

    def __init__(self):
        self.logger = get_logger(__name__)
        self.documents: Dict[str, Dict[str, Any]] = {}
        self.indexes: Dict[str, IndexDefinition] = {}
        self.aliases: Dict[str, str] = {}
        self.meta: Dict[str, str] = {}
        self.commands: List[Tuple[str, str]] = []

    def _record(self, command: str, target: str) -> None:
        self.commands.append((command, target))

    def _resolve(self, name: str, operation: str) -> str:
        physical = self.aliases.get(name, name)
        if physical not in self.indexes:
            raise IndexNotFound(name, operation=operation)
        return physical

    def _keys_for(self, definition: IndexDefinition) -> List[str]:
        return [key for key in self.documents
                if any(key.startswith(prefix) for prefix in definition.prefixes)]

    async def create_index(self, name: str, definition: IndexDefinition) -> None:
        self._record("create_index", name)
        if name in self.indexes or name in self.aliases:
            raise IndexAlreadyExists(name, operation="create_index")
        self.indexes[name] = definition
        self.logger.info("Index created", index_name=name, fields=len(definition.fields))

    async def drop_index(self, name: str, delete_documents: bool = False) -> None:
        self._record("drop_index", name)
        if name not in self.indexes:
            raise IndexNotFound(name, operation="drop_index")
        definition = self.indexes.pop(name)
        for alias in [alias for alias, target in self.aliases.items() if target == name]:
            del self.aliases[alias]
        if delete_documents:
            for key in self._keys_for(definition):
                del self.documents[key]

    async def index_info(self, name: str) -> Optional[Dict[str, Any]]:
        physical = self.aliases.get(name, name)
        definition = self.indexes.get(physical)
        if definition is None:
            return None
        return {
            "index_name": physical,
            "indexing": False,
            "percent_indexed": 1.0,
            "num_docs": len(self._keys_for(definition)),
        }

    async def alias_add(self, alias: str, index: str) -> None:
        self._record("alias_add", alias)
        if alias in self.aliases or alias in self.indexes:
            raise IndexAlreadyExists(alias, operation="alias_add")
        self._resolve(index, "alias_add")
        self.aliases[alias] = index

    async def alias_update(self, alias: str, index: str) -> None:
        self._record("alias_update", alias)
        self._resolve(index, "alias_update")
        self.aliases[alias] = index

    async def alias_delete(self, alias: str) -> None:
        self._record("alias_delete", alias)
        if alias not in self.aliases:
            raise IndexNotFound(alias, operation="alias_delete")
        del self.aliases[alias]

    async def json_set(self, key: str, document: Dict[str, Any]) -> None:
        self._record("json_set", key)
        # Serialize to reject anything Redis could not store
        self.documents[key] = json.loads(json.dumps(document))

    async def json_get(self, key: str) -> Optional[Dict[str, Any]]:
        document = self.documents.get(key)
        return copy.deepcopy(document) if document is not None else None

    async def delete(self, key: str) -> bool:
        self._record("delete", key)
        return self.documents.pop(key, None) is not None

    async def search(self, index: str, query: str, offset: int = 0, limit: int = 10,
                     sort_by: Optional[str] = None, ascending: bool = True) -> SearchPage:
        definition = self.indexes[self._resolve(index, "search")]
        fields = {index_field.alias: index_field for index_field in definition.fields}
        tree = parse_query(query)

        matches = [key for key in self._keys_for(definition)
                   if self._evaluate(tree, self.documents[key], fields)]

        if sort_by:
            sort_field = fields.get(sort_by)
            if sort_field is None or not sort_field.sortable:
                raise BackendError(f"Property '{sort_by}' not loaded nor in schema", operation="search")
            present = [key for key in matches if _values_at(self.documents[key], sort_field.json_path)]
            missing = [key for key in matches if key not in present]
            present.sort(key=lambda key: _values_at(self.documents[key], sort_field.json_path)[0],
                         reverse=not ascending)
            matches = present + missing

        page = matches[offset:offset + limit] if limit > 0 else []
        return SearchPage(
            total=len(matches),
            hits=[(key, copy.deepcopy(self.documents[key])) for key in page],
        )

    def _evaluate(self, node: tuple, document: Dict[str, Any], fields: Dict[str, IndexField]) -> bool:
        op = node[0]
        if op == "all":
            return True
        if op == "and":
            return all(self._evaluate(child, document, fields) for child in node[1])
        if op == "or":
            return any(self._evaluate(child, document, fields) for child in node[1])
        if op == "not":
            return not self._evaluate(node[1], document, fields)

        index_field = fields.get(node[1])
        if index_field is None:
            raise BackendError(f"Unknown field '{node[1]}'", operation="search")
        values = _values_at(document, index_field.json_path)

        if op == "tag":
            self._require(index_field, FieldKind.EXACT)
            wanted = set(node[2])
            return any(token in wanted for value in values for token in _tag_tokens(value))
        if op == "range":
            self._require(index_field, FieldKind.NUMERIC)
            _, _, low, low_exclusive, high, high_exclusive = node
            for value in values:
                if isinstance(value, bool) or not isinstance(value, (int, float)):
                    continue
                above = value > low if low_exclusive else value >= low
                below = value < high if high_exclusive else value <= high
                if above and below:
                    return True
            return False
        if op == "geo":
            self._require(index_field, FieldKind.GEO)
            _, _, longitude, latitude, radius = node
            for value in values:
                point = _parse_geo(value)
                if point and haversine_meters(longitude, latitude, point[0], point[1]) <= radius:
                    return True
            return False
        if op == "text":
            if index_field.kind == FieldKind.EXACT:
                raise BackendError(f"Field '{node[1]}' is a tag field", operation="search")
            terms = node[2]
            for value in values:
                if not isinstance(value, str):
                    continue
                words = [word.lower() for word in _WORD_RE.findall(value)]
                for start in range(len(words) - len(terms) + 1):
                    if words[start:start + len(terms)] == terms:
                        return True
            return False
        raise BackendError(f"Unsupported query node {op}", operation="search")

    @staticmethod
    def _require(index_field: IndexField, kind: FieldKind) -> None:
        if index_field.kind != kind:
            raise BackendError(
                f"Field '{index_field.alias}' is {index_field.kind.value}, not {kind.value}",
                operation="search",
            )

    async def get_meta(self, key: str) -> Optional[str]:
        return self.meta.get(key)

    async def set_meta(self, key: str, value: str) -> None:
        self.meta[key] = value

    async def delete_meta(self, key: str) -> None:
        self.meta.pop(key, None)

    async def flush(self) -> None:
        self.documents.clear()
        self.indexes.clear()
        self.aliases.clear()
        self.meta.clear()

    async def ping(self) -> bool:
        return True
