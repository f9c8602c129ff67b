"""Explicit table model declarations.

A model is a statically constructed list of columns per table -- no runtime
reflection.  Models are collected in a ``ModelRegistry`` either in code or
from a TOML file (see ``db_migrator.model.loader``).

Usage:
    from db_migrator.model import Column, ModelRegistry, table

    registry = ModelRegistry()
    registry.register(
        table(
            "users",
            Column("id", "bigint", primary_key=True),
            Column("name", "text"),
        )
    )

    @registry.register
    def orders():
        return table("orders", Column("id", "uuid", primary_key=True))
"""

from collections.abc import Callable, Iterator
from dataclasses import dataclass, field

from db_migrator.errors import ConfigurationError
from db_migrator.schema.ddl import check_identifier
from db_migrator.schema.types import LogicalType


@dataclass(frozen=True)
class Column:
    """A declared column.

    ``type`` is a ``LogicalType`` or its name; it is resolved when the model
    is described, so an unknown name surfaces as ``UnsupportedTypeError``
    before any database access.  Leaving ``nullable`` unset means NOT NULL for
    the primary key and NULL for every other column.
    """

    name: str
    type: LogicalType | str
    primary_key: bool = False
    nullable: bool | None = None

    @property
    def is_nullable(self) -> bool:
        """Effective nullability: primary keys default to NOT NULL, others to NULL."""
        if self.nullable is None:
            return not self.primary_key
        return self.nullable


@dataclass(frozen=True)
class TableModel:
    """Declared shape of one table."""

    name: str
    columns: tuple[Column, ...] = field(default_factory=tuple)
    schema: str = "public"

    @property
    def primary_key(self) -> Column | None:
        """The primary key column, if one is declared."""
        keys = [col for col in self.columns if col.primary_key]
        return keys[0] if keys else None

    def validate(self) -> None:
        """Check structural validity.

        Raises:
            ConfigurationError: If the model has no columns, duplicate column
                names, more than one primary key, a nullable primary key, or
                an identifier outside the allow-list.
        """
        check_identifier(self.schema, "schema")
        check_identifier(self.name, "table")

        if not self.columns:
            raise ConfigurationError(
                f"Model for table '{self.name}' declares no columns"
            )

        seen: set[str] = set()
        for col in self.columns:
            check_identifier(col.name, "column")
            if col.name in seen:
                raise ConfigurationError(
                    f"Column '{col.name}' declared twice in table '{self.name}'"
                )
            seen.add(col.name)

        keys = [col.name for col in self.columns if col.primary_key]
        if len(keys) > 1:
            raise ConfigurationError(
                f"Table '{self.name}' declares more than one primary key column: "
                f"{', '.join(keys)}"
            )
        for col in self.columns:
            # PostgreSQL forces NOT NULL on key columns
            if col.primary_key and col.is_nullable:
                raise ConfigurationError(
                    f"Primary key column '{self.name}.{col.name}' must be declared NOT NULL"
                )


def table(name: str, *columns: Column, schema: str = "public") -> TableModel:
    """Build a ``TableModel`` from positional columns."""
    return TableModel(name=name, columns=tuple(columns), schema=schema)


class ModelRegistry:
    """Ordered collection of table models, keyed by table name.

    Iteration follows registration order, which is also the order
    migrations run in.
    """

    def __init__(self) -> None:
        self._models: dict[str, TableModel] = {}

    def register(
        self, model: TableModel | Callable[[], TableModel]
    ) -> TableModel | Callable[[], TableModel]:
        """Register a model, or a zero-argument factory returning one.

        When given a factory (decorator use), the factory is called once and
        returned unchanged.

        Raises:
            ConfigurationError: If a model for the same table is already
                registered.
        """
        resolved = model() if callable(model) and not isinstance(model, TableModel) else model
        if not isinstance(resolved, TableModel):
            raise ConfigurationError(
                f"Expected a TableModel, got {type(resolved).__name__}"
            )
        key = f"{resolved.schema}.{resolved.name}"
        if key in self._models:
            raise ConfigurationError(f"Table '{key}' is already registered")
        self._models[key] = resolved
        return model

    def get(self, name: str, schema: str = "public") -> TableModel:
        """Get a registered model.

        Raises:
            KeyError: If no model is registered for the table.
        """
        key = f"{schema}.{name}"
        if key not in self._models:
            raise KeyError(f"No model registered for table '{key}'")
        return self._models[key]

    def names(self) -> list[str]:
        """Registered table names in registration order."""
        return [model.name for model in self._models.values()]

    def __iter__(self) -> Iterator[TableModel]:
        return iter(list(self._models.values()))

    def __len__(self) -> int:
        return len(self._models)

    def __contains__(self, name: object) -> bool:
        return any(model.name == name for model in self._models.values())
