"""Tests for DDL statement builders and identifier handling."""

import pytest

from db_migrator.errors import ConfigurationError
from db_migrator.schema.ddl import (
    AddColumn,
    AddForeignKey,
    AddPrimaryKey,
    AlterColumn,
    CreateTable,
    DropColumn,
    DropConstraint,
    MAX_IDENTIFIER_LENGTH,
    OperationKind,
    check_identifier,
    primary_key_name,
    qualified,
    quote,
)
from db_migrator.schema.models import ColumnDescriptor, ForeignKeyRef


ID = ColumnDescriptor(name="id", sql_type="BIGINT", is_primary_key=True, is_nullable=False)
NAME = ColumnDescriptor(name="name", sql_type="TEXT")


# ============================================================
# Test: identifiers
# ============================================================


class TestIdentifiers:
    """Quoting and allow-list validation."""

    def test_quote_always_quotes(self) -> None:
        assert quote("users") == '"users"'

    def test_quote_doubles_embedded_quotes(self) -> None:
        assert quote('we"ird') == '"we""ird"'

    def test_qualified(self) -> None:
        assert qualified("public", "users") == '"public"."users"'

    @pytest.mark.parametrize("name", ["users", "_tmp", "Order2", "a$b"])
    def test_valid_identifiers(self, name: str) -> None:
        assert check_identifier(name) == name

    @pytest.mark.parametrize("name", ["", "1abc", "drop table", 'x"; --', "naïve"])
    def test_invalid_identifiers(self, name: str) -> None:
        with pytest.raises(ConfigurationError, match="Invalid column name"):
            check_identifier(name, "column")

    def test_too_long_identifier(self) -> None:
        with pytest.raises(ConfigurationError, match="exceeds 63 bytes"):
            check_identifier("a" * (MAX_IDENTIFIER_LENGTH + 1), "table")

    def test_primary_key_name(self) -> None:
        assert primary_key_name("users") == "pk_users"

    def test_long_primary_key_name_is_truncated_deterministically(self) -> None:
        table = "t" * 63
        name = primary_key_name(table)
        assert len(name) == MAX_IDENTIFIER_LENGTH
        assert name == primary_key_name(table)
        assert name != primary_key_name("t" * 62 + "u")


# ============================================================
# Test: statements
# ============================================================


class TestStatements:
    """Each operation renders one PostgreSQL statement."""

    def test_add_column(self) -> None:
        op = AddColumn(schema="public", table="users", column=NAME)
        assert op.to_sql() == 'ALTER TABLE "public"."users" ADD COLUMN "name" TEXT NULL;'
        assert op.kind is OperationKind.ADD_COLUMN
        assert op.destructive is False

    def test_alter_type_uses_cast(self) -> None:
        op = AlterColumn(schema="public", table="users", column="id", new_type="BIGINT")
        assert op.to_sql() == (
            'ALTER TABLE "public"."users" ALTER COLUMN "id" TYPE BIGINT USING "id"::BIGINT;'
        )

    def test_alter_nullability_only(self) -> None:
        op = AlterColumn(schema="public", table="users", column="name", nullable=False)
        assert op.to_sql() == 'ALTER TABLE "public"."users" ALTER COLUMN "name" SET NOT NULL;'

    def test_alter_type_and_nullability(self) -> None:
        op = AlterColumn(
            schema="public", table="users", column="name", new_type="TEXT", nullable=True
        )
        assert op.to_sql() == (
            'ALTER TABLE "public"."users" ALTER COLUMN "name" TYPE TEXT USING "name"::TEXT, '
            'ALTER COLUMN "name" DROP NOT NULL;'
        )

    def test_drop_column_is_destructive(self) -> None:
        op = DropColumn(schema="public", table="users", column="legacy")
        assert op.to_sql() == 'ALTER TABLE "public"."users" DROP COLUMN "legacy";'
        assert op.destructive is True

    def test_drop_constraint_kinds(self) -> None:
        pk = DropConstraint(schema="public", table="users", constraint_name="users_pkey")
        fk = DropConstraint(
            schema="public",
            table="orders",
            constraint_name="fk_orders_user",
            kind=OperationKind.DROP_FOREIGN_KEY,
        )
        assert pk.kind is OperationKind.DROP_PRIMARY_KEY
        assert fk.kind is OperationKind.DROP_FOREIGN_KEY
        assert pk.to_sql() == 'ALTER TABLE "public"."users" DROP CONSTRAINT "users_pkey";'

    def test_add_primary_key(self) -> None:
        op = AddPrimaryKey(
            schema="public", table="users", constraint_name="pk_users", column="id"
        )
        assert op.to_sql() == (
            'ALTER TABLE "public"."users" ADD CONSTRAINT "pk_users" PRIMARY KEY ("id");'
        )

    def test_add_foreign_key(self) -> None:
        fk = ForeignKeyRef(
            constraint_name="fk_orders_user", owning_table="orders", owning_column="user_id"
        )
        op = AddForeignKey(
            foreign_key=fk,
            referenced_schema="public",
            referenced_table="users",
            referenced_column="id",
        )
        assert op.to_sql() == (
            'ALTER TABLE "public"."orders" ADD CONSTRAINT "fk_orders_user" '
            'FOREIGN KEY ("user_id") REFERENCES "public"."users" ("id");'
        )

    def test_add_foreign_key_keeps_rules(self) -> None:
        fk = ForeignKeyRef(
            constraint_name="fk_orders_user",
            owning_table="orders",
            owning_column="user_id",
            delete_rule="CASCADE",
        )
        op = AddForeignKey(fk, "public", "users", "id")
        assert op.to_sql().endswith('("id") ON DELETE CASCADE;')

    def test_add_foreign_key_rejects_unknown_rule(self) -> None:
        fk = ForeignKeyRef(
            constraint_name="fk", owning_table="orders", owning_column="user_id",
            update_rule="DROP TABLE",
        )
        with pytest.raises(ConfigurationError, match="Unknown referential action"):
            AddForeignKey(fk, "public", "users", "id").to_sql()

    def test_create_table(self) -> None:
        op = CreateTable(
            schema="public", table="users", columns=[ID, NAME], primary_key_name="pk_users"
        )
        assert op.to_sql() == (
            'CREATE TABLE "public"."users" ("id" BIGINT NOT NULL, "name" TEXT NULL, '
            'CONSTRAINT "pk_users" PRIMARY KEY ("id"));'
        )

    def test_create_table_without_key(self) -> None:
        op = CreateTable(schema="audit", table="events", columns=[NAME])
        assert op.to_sql() == 'CREATE TABLE "audit"."events" ("name" TEXT NULL);'
