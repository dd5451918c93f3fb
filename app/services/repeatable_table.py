from __future__ import annotations

import logging
from typing import Any, Callable, Iterable
from uuid import uuid4

from app.schemas.fields import ColumnDefinition, FieldDefinition, RepeatableTableRow, TableColumn
from app.services.lookup_cache import LookupCache

_LOG = logging.getLogger("app.forms")

SYNTHETIC_SEPARATOR = "__"

RowsListener = Callable[[str, list[RepeatableTableRow]], None]


def new_row_id() -> str:
    return f"row-{uuid4().hex}"


def coerce_rows(value: Any) -> list[RepeatableTableRow]:
    """Accept stored rows (`[{id, values}]`) or row models; drop malformed items."""
    if not isinstance(value, (list, tuple)):
        return []
    rows: list[RepeatableTableRow] = []
    for item in value:
        if isinstance(item, RepeatableTableRow):
            rows.append(item)
            continue
        if not isinstance(item, dict):
            continue
        row_id = str(item.get("id") or "").strip() or new_row_id()
        rows.append(RepeatableTableRow(id=row_id, values=item.get("values") or {}))
    return rows


def serialize_rows(rows: Iterable[RepeatableTableRow]) -> list[dict[str, Any]]:
    return [{"id": row.id, "values": dict(row.values)} for row in rows]


class RepeatableTableEngine:
    """Row operations for one repeatable-table field.

    Every operation returns a fresh row list; rows handed out earlier are never
    mutated. Table-bound columns fetch their candidates through the session's
    LookupCache. Picking a lookup row writes the label into the column cell and
    copies each extra display column into a read-only `<column>__<display>` cell.
    """

    def __init__(
        self,
        field: FieldDefinition,
        rows: Any = None,
        *,
        lookup_cache: LookupCache | None = None,
        on_change: RowsListener | None = None,
    ):
        self.field = field
        self.columns: list[ColumnDefinition] = list(field.columns)
        self._rows: list[RepeatableTableRow] = coerce_rows(rows)
        self._lookup_cache = lookup_cache if lookup_cache is not None else LookupCache()
        self._on_change = on_change

    @property
    def rows(self) -> list[RepeatableTableRow]:
        return list(self._rows)

    def column(self, key: str) -> ColumnDefinition | None:
        for column in self.columns:
            if column.key == key:
                return column
        return None

    def effective_columns(self) -> list[TableColumn]:
        out: list[TableColumn] = []
        for column in self.columns:
            if not column.is_table_bound:
                out.append(TableColumn(key=column.key, label=column.label, kind="free"))
                continue
            out.append(
                TableColumn(key=column.key, label=column.label, kind="lookup", source_column=column.label_column)
            )
            for display_column in column.extra_display_columns:
                out.append(
                    TableColumn(
                        key=column.synthetic_key(display_column),
                        label=display_column,
                        kind="display",
                        read_only=True,
                        source_column=display_column,
                    )
                )
        return out

    def editable_columns(self) -> list[TableColumn]:
        return [column for column in self.effective_columns() if not column.read_only]

    def is_editable_key(self, key: str) -> bool:
        return any(column.key == key for column in self.editable_columns())

    def lookup_options(self, column: ColumnDefinition | str) -> list[dict[str, Any]]:
        col = self.column(column) if isinstance(column, str) else column
        if col is None or not col.is_table_bound:
            return []
        return self._lookup_cache.get_rows(
            col.lookup_table,
            col.value_column,
            col.label_column,
            col.display_columns,
            col.lookup_filter_column,
            col.lookup_filter_value,
        )

    def _commit(self, rows: list[RepeatableTableRow]) -> list[RepeatableTableRow]:
        self._rows = rows
        if self._on_change is not None:
            self._on_change(self.field.id, list(rows))
        return list(rows)

    def add_row(self) -> list[RepeatableTableRow]:
        row = RepeatableTableRow(id=new_row_id(), values={column.key: "" for column in self.columns})
        return self._commit(self._rows + [row])

    def remove_row(self, row_id: str) -> list[RepeatableTableRow]:
        return self._commit([row for row in self._rows if row.id != row_id])

    def _replace_values(self, row_id: str, updates: dict[str, str]) -> list[RepeatableTableRow]:
        out: list[RepeatableTableRow] = []
        found = False
        for row in self._rows:
            if row.id == row_id:
                found = True
                row = row.model_copy(update={"values": {**row.values, **updates}})
            out.append(row)
        if not found:
            _LOG.debug("ignoring update for unknown row field=%s row=%s", self.field.id, row_id)
            return list(self._rows)
        return self._commit(out)

    def set_cell(self, row_id: str, column_key: str, value: Any) -> list[RepeatableTableRow]:
        if not self.is_editable_key(column_key):
            _LOG.debug("ignoring edit of non-editable cell field=%s column=%s", self.field.id, column_key)
            return list(self._rows)
        return self._replace_values(row_id, {column_key: "" if value is None else str(value)})

    def on_lookup_select(
        self,
        row_id: str,
        column: ColumnDefinition | str,
        selected_label: str,
    ) -> list[RepeatableTableRow]:
        col = self.column(column) if isinstance(column, str) else column
        if col is None:
            _LOG.debug("ignoring lookup selection for unknown column field=%s", self.field.id)
            return list(self._rows)
        label = "" if selected_label is None else str(selected_label)
        updates = {col.key: label}
        if col.is_table_bound:
            source = None
            for candidate in self.lookup_options(col):
                if str(candidate.get(col.label_column, "")) == label:
                    source = candidate
                    break
            for display_column in col.extra_display_columns:
                raw = source.get(display_column) if source is not None else None
                updates[col.synthetic_key(display_column)] = "" if raw is None else str(raw)
        return self._replace_values(row_id, updates)
