"""Logical column types and their PostgreSQL syntax.

Pure logic -- no I/O.  Declared columns use a closed set of logical types
(``LogicalType``); each one maps to exactly one PostgreSQL type through
``_SQL_TYPES``.  Live catalog types and declared types are compared through
``normalize_type()`` so that ``INTEGER`` and ``integer`` (or ``BOOLEAN`` and
``bool``) are never reported as a change.

Usage:
    from db_migrator.schema.types import LogicalType, map_type

    map_type(LogicalType.BIGINT, is_nullable=False)
    # 'BIGINT NOT NULL'
"""

import re
from enum import Enum

from db_migrator.errors import UnsupportedTypeError


class LogicalType(str, Enum):
    """Logical column types supported by declarations."""

    SMALLINT = "smallint"
    INTEGER = "integer"
    BIGINT = "bigint"
    DECIMAL = "decimal"
    REAL = "real"
    DOUBLE = "double"
    TEXT = "text"
    BOOLEAN = "boolean"
    TIMESTAMP = "timestamp"
    TIMESTAMPTZ = "timestamptz"
    UUID = "uuid"

    @classmethod
    def parse(cls, value: "LogicalType | str") -> "LogicalType":
        """Resolve a logical type from a member or a (case-insensitive) name.

        Accepts member values and the aliases in ``_ALIASES``.

        Raises:
            UnsupportedTypeError: If the name is not a known logical type.

        Example:
            >>> LogicalType.parse("long")
            <LogicalType.BIGINT: 'bigint'>
        """
        if isinstance(value, cls):
            return value
        if not isinstance(value, str):
            raise UnsupportedTypeError(repr(value))

        key = value.strip().lower()
        try:
            return cls(key)
        except ValueError:
            pass
        if key in _ALIASES:
            return _ALIASES[key]
        raise UnsupportedTypeError(value)


_ALIASES: dict[str, LogicalType] = {
    "int2": LogicalType.SMALLINT,
    "short": LogicalType.SMALLINT,
    "int": LogicalType.INTEGER,
    "int4": LogicalType.INTEGER,
    "int8": LogicalType.BIGINT,
    "long": LogicalType.BIGINT,
    "numeric": LogicalType.DECIMAL,
    "float4": LogicalType.REAL,
    "float": LogicalType.DOUBLE,
    "float8": LogicalType.DOUBLE,
    "double precision": LogicalType.DOUBLE,
    "string": LogicalType.TEXT,
    "str": LogicalType.TEXT,
    "bool": LogicalType.BOOLEAN,
    "datetime": LogicalType.TIMESTAMP,
    "guid": LogicalType.UUID,
}

_SQL_TYPES: dict[LogicalType, str] = {
    LogicalType.SMALLINT: "SMALLINT",
    LogicalType.INTEGER: "INTEGER",
    LogicalType.BIGINT: "BIGINT",
    LogicalType.DECIMAL: "NUMERIC(18,2)",
    LogicalType.REAL: "REAL",
    LogicalType.DOUBLE: "DOUBLE PRECISION",
    LogicalType.TEXT: "TEXT",
    LogicalType.BOOLEAN: "BOOLEAN",
    LogicalType.TIMESTAMP: "TIMESTAMP",
    LogicalType.TIMESTAMPTZ: "TIMESTAMPTZ",
    LogicalType.UUID: "UUID",
}

# Catalog spellings folded to one canonical name for comparison
_TYPE_ALIASES: dict[str, str] = {
    "integer": "int",
    "int4": "int",
    "int8": "bigint",
    "int2": "smallint",
    "boolean": "bool",
    "decimal": "numeric",
    "float8": "double precision",
    "float4": "real",
    "character varying": "varchar",
    "character": "char",
    "timestamp without time zone": "timestamp",
    "timestamp with time zone": "timestamptz",
    "time without time zone": "time",
    "time with time zone": "timetz",
}

_TYPE_PATTERN = re.compile(r"^\s*([a-z0-9_ ]+?)\s*(?:\(\s*([0-9,\s]+)\s*\))?\s*$")


def sql_type(logical_type: LogicalType | str) -> str:
    """Return the PostgreSQL type syntax for a logical type.

    Raises:
        UnsupportedTypeError: If the type has no mapping.
    """
    return _SQL_TYPES[LogicalType.parse(logical_type)]


def map_type(logical_type: LogicalType | str, is_nullable: bool) -> str:
    """Return the column clause for a logical type with explicit nullability.

    The ``NULL``/``NOT NULL`` suffix is always present so nullability-only
    changes are visible to the diff.

    Example:
        >>> map_type("text", is_nullable=True)
        'TEXT NULL'
    """
    suffix = "NULL" if is_nullable else "NOT NULL"
    return f"{sql_type(logical_type)} {suffix}"


def normalize_type(data_type: str) -> str:
    """Normalize a type name to the canonical form used for comparison.

    Lower-cases, collapses whitespace, folds aliases and strips spaces
    inside the modifier list.

    Example:
        >>> normalize_type("character varying(255)")
        'varchar(255)'
        >>> normalize_type("NUMERIC(18, 2)")
        'numeric(18,2)'
    """
    text = " ".join(data_type.lower().split())
    match = _TYPE_PATTERN.match(text)
    if not match:
        return text

    base, modifiers = match.group(1), match.group(2)
    base = _TYPE_ALIASES.get(base, base)
    if modifiers:
        args = ",".join(part.strip() for part in modifiers.split(","))
        return f"{base}({args})"
    return base
