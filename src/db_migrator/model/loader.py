"""Load table models from a TOML file.

File format::

    [tables.users]
    schema = "public"            # optional
    columns = [
        { name = "id", type = "bigint", primary_key = true },
        { name = "name", type = "text" },
    ]

Tables are registered in file order; columns keep their declared order.
Entries are validated by pydantic models: unknown keys are rejected and
flags must be real TOML booleans (``primary_key = "false"`` is an error,
not a truthy string).
"""

import tomllib
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, StrictBool, StrictStr, ValidationError

from db_migrator.errors import ConfigurationError
from db_migrator.model.declaration import Column, ModelRegistry, TableModel


class ColumnEntry(BaseModel):
    """One inline table of a ``columns`` array."""

    model_config = ConfigDict(extra="forbid")

    name: StrictStr
    type: StrictStr
    primary_key: StrictBool = False
    nullable: StrictBool | None = None


class TableEntry(BaseModel):
    """One ``[tables.<name>]`` section."""

    model_config = ConfigDict(extra="forbid")

    schema_name: StrictStr = Field(default="public", alias="schema")
    columns: list[ColumnEntry] = Field(default_factory=list)


def load_models(models_path: str | Path) -> ModelRegistry:
    """Load a ``ModelRegistry`` from a TOML model file.

    Column types are not resolved here -- an unknown type name is reported
    as ``UnsupportedTypeError`` when the model is planned.

    Args:
        models_path: Path to the TOML model file.

    Returns:
        ModelRegistry with one model per ``[tables.<name>]`` section.

    Raises:
        FileNotFoundError: If the file does not exist.
        ConfigurationError: If a table or column entry is malformed.
    """
    path = Path(models_path)
    if not path.exists():
        raise FileNotFoundError(f"Model file not found: {path}")

    with open(path, "rb") as f:
        try:
            data = tomllib.load(f)
        except tomllib.TOMLDecodeError as e:
            raise ConfigurationError(f"Invalid model file {path.name}: {e}") from e

    registry = ModelRegistry()
    for table_name, table_data in data.get("tables", {}).items():
        try:
            entry = TableEntry.model_validate(table_data)
        except ValidationError as e:
            raise ConfigurationError(
                f"Invalid [tables.{table_name}] in {path.name}: {e}"
            ) from e

        registry.register(
            TableModel(
                name=table_name,
                columns=tuple(
                    Column(
                        name=col.name,
                        type=col.type,
                        primary_key=col.primary_key,
                        nullable=col.nullable,
                    )
                    for col in entry.columns
                ),
                schema=entry.schema_name,
            )
        )

    return registry
