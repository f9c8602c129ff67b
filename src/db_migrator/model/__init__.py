"""Table model declarations.

Usage:
    from db_migrator.model import Column, TableModel, ModelRegistry, table
    from db_migrator.model import load_models
"""

from db_migrator.model.declaration import Column, ModelRegistry, TableModel, table
from db_migrator.model.loader import load_models

__all__ = ["Column", "TableModel", "ModelRegistry", "table", "load_models"]
