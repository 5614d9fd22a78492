"""Plain-data request and result values exchanged with SQL adapters."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from enum import Enum
from typing import Any, Mapping

from .errors import ValidationError

Row = Mapping[str, Any]

DEFAULT_PAGE_SIZE = 50


@dataclass(frozen=True, slots=True)
class RunQueryOptions:
    """Pagination requested for an ad-hoc query."""

    limit: int | None = None
    offset: int | None = None


@dataclass(frozen=True, slots=True)
class QueryResult:
    """Rows produced by one ad-hoc query."""

    rows: tuple[dict[str, Any], ...]
    columns: tuple[str, ...]
    row_count: int
    execution_time: float
    total_row_count: int | None = None
    limit: int | None = None
    offset: int | None = None


class ReferentialAction(str, Enum):
    """ON DELETE / ON UPDATE behaviour of a foreign key."""

    CASCADE = "CASCADE"
    RESTRICT = "RESTRICT"
    SET_NULL = "SET NULL"
    SET_DEFAULT = "SET DEFAULT"
    NO_ACTION = "NO ACTION"

    @classmethod
    def parse(cls, value: object) -> ReferentialAction:
        """Map a catalog rule string onto an action, defaulting to NO ACTION."""

        try:
            return cls(str(value).upper()) if value else cls.NO_ACTION
        except ValueError:
            return cls.NO_ACTION


@dataclass(frozen=True, slots=True)
class ForeignKeyInfo:
    referenced_schema: str
    referenced_table: str
    referenced_column: str
    on_delete: ReferentialAction = ReferentialAction.NO_ACTION
    on_update: ReferentialAction = ReferentialAction.NO_ACTION


@dataclass(frozen=True, slots=True)
class ColumnInfo:
    name: str
    type: str
    nullable: bool
    default_value: Any = None
    is_primary_key: bool = False
    enum_values: tuple[str, ...] | None = None
    foreign_key: ForeignKeyInfo | None = None


@dataclass(frozen=True, slots=True)
class ForeignTable:
    schema: str
    name: str


@dataclass(frozen=True, slots=True)
class ConstraintInfo:
    name: str
    type: str
    columns: tuple[str, ...]
    foreign_table: ForeignTable | None = None
    foreign_columns: tuple[str, ...] | None = None


@dataclass(frozen=True, slots=True)
class IndexInfo:
    name: str
    columns: tuple[str, ...]
    unique: bool


@dataclass(frozen=True, slots=True)
class TableInfo:
    """Structure of one table, read fresh from the catalog."""

    name: str
    schema: str
    columns: tuple[ColumnInfo, ...]
    constraints: tuple[ConstraintInfo, ...] | None = None
    indexes: tuple[IndexInfo, ...] | None = None

    @property
    def primary_key_columns(self) -> tuple[str, ...]:
        return tuple(column.name for column in self.columns if column.is_primary_key)


@dataclass(frozen=True, slots=True)
class SchemaWithTables:
    schema: str
    tables: tuple[str, ...]


class FilterOperator(str, Enum):
    """Comparison operators accepted in table filters."""

    EQ = "="
    NE = "<>"
    GT = ">"
    LT = "<"
    GE = ">="
    LE = "<="
    LIKE = "LIKE"
    ILIKE = "ILIKE"
    IN = "IN"
    IS = "IS"


class IsValue(str, Enum):
    """Fixed right-hand sides allowed after `IS`."""

    NULL = "NULL"
    NOT_NULL = "NOT NULL"
    TRUE = "TRUE"
    FALSE = "FALSE"


@dataclass(frozen=True, slots=True)
class TableFilter:
    """One `column operator value` condition; conditions are ANDed together."""

    column: str
    operator: FilterOperator
    value: Any

    def __post_init__(self) -> None:
        try:
            operator = (
                self.operator
                if isinstance(self.operator, FilterOperator)
                else FilterOperator(str(self.operator).strip().upper())
            )
        except ValueError:
            raise ValidationError(f'Unsupported filter operator "{self.operator}"') from None
        object.__setattr__(self, "operator", operator)
        if not self.column:
            raise ValidationError("Filter column must be a non-empty string")
        if operator is FilterOperator.IN:
            if isinstance(self.value, (str, bytes)) or not isinstance(self.value, Sequence):
                raise ValidationError(f'IN filter on "{self.column}" expects a list of values')
            object.__setattr__(self, "value", tuple(self.value))
        elif operator is FilterOperator.IS:
            try:
                value = self.value if isinstance(self.value, IsValue) else IsValue(str(self.value).strip().upper())
                object.__setattr__(self, "value", value)
            except ValueError:
                raise ValidationError(
                    f'IS filter on "{self.column}" expects NULL, NOT NULL, TRUE or FALSE'
                ) from None


@dataclass(frozen=True, slots=True)
class SortRule:
    column: str
    direction: str = "ASC"

    @property
    def descending(self) -> bool:
        return str(self.direction).upper() == "DESC"


@dataclass(frozen=True, slots=True)
class TableDataOptions:
    """Which slice of a table to read. `limit=None` reads every row."""

    schema: str
    table: str
    filters: tuple[TableFilter, ...] = ()
    sort_rules: tuple[SortRule, ...] = ()
    limit: int | None = DEFAULT_PAGE_SIZE
    offset: int = 0


@dataclass(frozen=True, slots=True)
class TableDataColumn:
    name: str
    data_type: str
    is_primary_key: bool = False
    enum_values: tuple[str, ...] | None = None
    foreign_key: ForeignKeyInfo | None = None


@dataclass(frozen=True, slots=True)
class TableDataResult:
    rows: tuple[dict[str, Any], ...]
    columns: tuple[TableDataColumn, ...]
    total_count: int
    row_count: int
    execution_time: float
    primary_key_columns: tuple[str, ...]


@dataclass(frozen=True, slots=True)
class DeleteTableRowsOptions:
    schema: str
    table: str
    rows: tuple[Row, ...]


@dataclass(frozen=True, slots=True)
class DeleteTableRowsResult:
    deleted_row_count: int


@dataclass(frozen=True, slots=True)
class UpdateTableCellOptions:
    schema: str
    table: str
    column_to_update: str
    new_value: Any
    row: Row


@dataclass(frozen=True, slots=True)
class UpdateTableCellResult:
    updated_row_count: int


@dataclass(frozen=True, slots=True)
class InsertTableRowOptions:
    schema: str
    table: str
    values: Row


@dataclass(frozen=True, slots=True)
class InsertTableRowResult:
    inserted_row_count: int


@dataclass(frozen=True, slots=True)
class ExportTableOptions:
    schema: str
    table: str
    filters: tuple[TableFilter, ...] = ()
    sort_rules: tuple[SortRule, ...] = ()


@dataclass(frozen=True, slots=True)
class ExportTableResult:
    base64_content: str
    filename: str
    mime_type: str


@dataclass(frozen=True, slots=True)
class ForeignKeyReference:
    """Target of a foreign key declared while creating a table."""

    table: str
    column: str
    on_delete: ReferentialAction | None = None
    on_update: ReferentialAction | None = None


@dataclass(frozen=True, slots=True)
class ColumnDefinition:
    name: str
    type: str
    nullable: bool | None = None
    default_value: str | None = None
    is_primary_key: bool = False
    is_unique: bool = False
    foreign_key: ForeignKeyReference | None = None


@dataclass(frozen=True, slots=True)
class CreateTableOptions:
    schema: str
    table: str
    columns: tuple[ColumnDefinition, ...] = ()


@dataclass(frozen=True, slots=True)
class DeleteTableOptions:
    schema: str
    table: str


@dataclass(frozen=True, slots=True)
class TableOperationResult:
    success: bool


__all__ = [
    "ColumnDefinition",
    "ColumnInfo",
    "ConstraintInfo",
    "CreateTableOptions",
    "DEFAULT_PAGE_SIZE",
    "DeleteTableOptions",
    "DeleteTableRowsOptions",
    "DeleteTableRowsResult",
    "ExportTableOptions",
    "ExportTableResult",
    "FilterOperator",
    "ForeignKeyInfo",
    "ForeignKeyReference",
    "ForeignTable",
    "IndexInfo",
    "InsertTableRowOptions",
    "InsertTableRowResult",
    "IsValue",
    "QueryResult",
    "ReferentialAction",
    "Row",
    "RunQueryOptions",
    "SchemaWithTables",
    "SortRule",
    "TableDataColumn",
    "TableDataOptions",
    "TableDataResult",
    "TableFilter",
    "TableInfo",
    "TableOperationResult",
    "UpdateTableCellOptions",
    "UpdateTableCellResult",
]
