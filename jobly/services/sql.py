"""Statement fragments shared by every entity.

Two builders live here, both driven by per-entity configuration rather than
per-entity code:

* ``sql_for_partial_update`` turns a sparse ``{field: value}`` map into
  ``"column"=$n`` assignments plus the values to bind, in input order.
* ``build_filter`` turns optional search criteria into ``and``-joined
  predicates plus the values to bind, in the vocabulary's fixed order.

Neither touches the database. Column names only ever come from the
configuration below or from keys that pass ``IDENTIFIER_RE``; caller data is
always bound positionally.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Any, Literal

from jobly.services.errors import EmptyUpdateError, FilterValidationError, RepositoryValidationError

IDENTIFIER_RE = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")
INTEGER_RE = re.compile(r"-?\d+", re.ASCII)
LIKE_SPECIAL_RE = re.compile(r"([\\%_])")
INT4_MAX = 2**31 - 1

CriterionKind = Literal["substring", "min", "max", "flag"]


@dataclass(slots=True)
class PartialUpdate:
    clauses: list[str]
    values: list[Any]

    @property
    def set_cols(self) -> str:
        return ", ".join(self.clauses)

    @property
    def next_placeholder(self) -> str:
        """Placeholder for the first value appended after the assignments."""
        return f"${len(self.values) + 1}"


def sql_for_partial_update(data: Mapping[str, Any], js_to_sql: Mapping[str, str]) -> PartialUpdate:
    """Build the SET part of an UPDATE from the fields a caller wants changed.

    ``js_to_sql`` maps external field names to column names; fields missing
    from it are used verbatim. ``{"firstName": "Aliya", "age": 32}`` with
    ``{"firstName": "first_name"}`` gives ``['"first_name"=$1', '"age"=$2']``
    and ``["Aliya", 32]``. The WHERE clause is the caller's business: its key
    goes in at ``next_placeholder``.
    """
    if not data:
        raise EmptyUpdateError()

    clauses: list[str] = []
    values: list[Any] = []
    for index, (field_name, value) in enumerate(data.items(), start=1):
        column = js_to_sql.get(field_name, field_name)
        if not IDENTIFIER_RE.fullmatch(column):
            raise RepositoryValidationError(f"invalid field name: {field_name}")
        clauses.append(f'"{column}"=${index}')
        values.append(value)
    return PartialUpdate(clauses=clauses, values=values)


@dataclass(frozen=True, slots=True)
class EntityTable:
    name: str
    key: str
    columns: Mapping[str, str]
    updatable: frozenset[str]
    immutable: frozenset[str]
    returning: str

    def column(self, field_name: str) -> str:
        return self.columns.get(field_name, field_name)

    def prepare_update(self, data: Mapping[str, Any]) -> PartialUpdate:
        # Identity-bearing fields are never written, whatever the caller sends.
        changes = {field_name: value for field_name, value in data.items() if field_name not in self.immutable}
        for field_name in changes:
            if field_name not in self.updatable:
                raise RepositoryValidationError(f"cannot update {self.name} field: {field_name}")
        return sql_for_partial_update(changes, self.columns)

    def update_statement(self, data: Mapping[str, Any], key_value: Any) -> tuple[str, list[Any]]:
        update = self.prepare_update(data)
        statement = (
            f"update {self.name} "
            f"set {update.set_cols} "
            f"where {self.key} = {update.next_placeholder} "
            f"returning {self.returning}"
        )
        return statement, [*update.values, key_value]


COMPANIES = EntityTable(
    name="companies",
    key="handle",
    columns={"numEmployees": "num_employees", "logoUrl": "logo_url"},
    updatable=frozenset({"name", "description", "numEmployees", "logoUrl"}),
    immutable=frozenset({"handle"}),
    returning='handle, name, description, num_employees as "numEmployees", logo_url as "logoUrl"',
)

JOBS = EntityTable(
    name="jobs",
    key="id",
    columns={"companyHandle": "company_handle"},
    updatable=frozenset({"title", "salary", "equity"}),
    immutable=frozenset({"id", "companyHandle"}),
    returning='id, company_handle as "companyHandle", title, salary, equity',
)

USERS = EntityTable(
    name="users",
    key="username",
    columns={"firstName": "first_name", "lastName": "last_name", "isAdmin": "is_admin"},
    updatable=frozenset({"firstName", "lastName", "password", "email", "isAdmin"}),
    immutable=frozenset({"username"}),
    returning='username, first_name as "firstName", last_name as "lastName", email, is_admin as "isAdmin"',
)


@dataclass(frozen=True, slots=True)
class Criterion:
    key: str
    column: str
    kind: CriterionKind
    non_negative: bool = False


@dataclass(frozen=True, slots=True)
class FilterSpec:
    criteria: tuple[Criterion, ...]
    bounds: tuple[tuple[str, str], ...] = ()

    @property
    def keys(self) -> frozenset[str]:
        return frozenset(criterion.key for criterion in self.criteria)


@dataclass(slots=True)
class FilterQuery:
    clauses: list[str]
    values: list[Any]

    @property
    def where_sql(self) -> str:
        return " and ".join(self.clauses)


COMPANY_FILTERS = FilterSpec(
    criteria=(
        Criterion("name", "name", "substring"),
        Criterion("minEmployees", "num_employees", "min"),
        Criterion("maxEmployees", "num_employees", "max"),
    ),
    bounds=(("minEmployees", "maxEmployees"),),
)

JOB_FILTERS = FilterSpec(
    criteria=(
        Criterion("title", "title", "substring"),
        Criterion("minSalary", "salary", "min", non_negative=True),
        Criterion("hasEquity", "equity", "flag"),
    ),
)


def build_filter(spec: FilterSpec, criteria: Mapping[str, Any]) -> FilterQuery:
    """Validate ``criteria`` against ``spec`` and build the WHERE predicates.

    Everything is validated before the first clause is produced. Criteria
    whose value is ``None`` count as not supplied.
    """
    for key in sorted(criteria):
        if key not in spec.keys:
            raise FilterValidationError(key, f"invalid filter: {key}")

    parsed: dict[str, Any] = {}
    for criterion in spec.criteria:
        raw = criteria.get(criterion.key)
        if raw is None:
            continue
        parsed[criterion.key] = _parse_criterion(criterion, raw)

    for low_key, high_key in spec.bounds:
        low = parsed.get(low_key)
        high = parsed.get(high_key)
        if low is not None and high is not None and low > high:
            raise FilterValidationError(low_key, f"{low_key} cannot be greater than {high_key}")

    clauses: list[str] = []
    values: list[Any] = []

    def bind(value: Any) -> str:
        values.append(value)
        return f"${len(values)}"

    for criterion in spec.criteria:
        if criterion.key not in parsed:
            continue
        value = parsed[criterion.key]
        column = criterion.column
        if criterion.kind == "substring":
            clauses.append(f"{column} ilike {bind(f'%{escape_like(value)}%')} escape '\\'")
        elif criterion.kind == "min":
            clauses.append(f"{column} >= {bind(value)}")
        elif criterion.kind == "max":
            clauses.append(f"{column} <= {bind(value)}")
        elif value:
            clauses.append(f"{column} > 0")
        else:
            clauses.append(f"({column} is null or {column} = 0)")
    return FilterQuery(clauses=clauses, values=values)


def escape_like(value: str) -> str:
    """Escape LIKE wildcards and backslashes so ``value`` matches literally."""
    return LIKE_SPECIAL_RE.sub(r"\\\1", value)


def collect_criteria(pairs: Iterable[tuple[str, Any]]) -> dict[str, Any]:
    """Fold query-string pairs into criteria; a key given twice is rejected."""
    criteria: dict[str, Any] = {}
    for key, value in pairs:
        if key in criteria:
            raise FilterValidationError(key, f"duplicate filter: {key}")
        criteria[key] = value
    return criteria


def _parse_criterion(criterion: Criterion, raw: Any) -> Any:
    key = criterion.key
    if criterion.kind == "substring":
        if not isinstance(raw, str):
            raise FilterValidationError(key, f"invalid type for {key}: must be a string")
        stripped = raw.strip()
        if not stripped:
            raise FilterValidationError(key, f"{key} must not be blank")
        return stripped

    if criterion.kind == "flag":
        if isinstance(raw, bool):
            return raw
        if raw == "true":
            return True
        if raw == "false":
            return False
        raise FilterValidationError(key, f'invalid type for {key}: must be "true" or "false"')

    if isinstance(raw, bool):
        raise FilterValidationError(key, f"invalid type for {key}: must be an integer")
    if isinstance(raw, int):
        number = raw
    else:
        text = str(raw).strip()
        if not INTEGER_RE.fullmatch(text):
            raise FilterValidationError(key, f"invalid type for {key}: must be an integer")
        number = int(text)
    if criterion.non_negative and number < 0:
        raise FilterValidationError(key, f"{key} must not be negative")
    if abs(number) > INT4_MAX:
        raise FilterValidationError(key, f"{key} is out of range")
    return number
