# chemdoc/services/table_editor.py
"""
Edits made in the review step. Every function returns a new ExtractedData
and leaves its input untouched.
"""
import logging
from typing import Iterable, List

from ..schemas.extracted_data import ExtractedData, ExtractedField
from .errors import FieldNotFoundError

logger = logging.getLogger(__name__)

# Row 0 is the header; a table keeps at least this many data rows
MIN_DATA_ROWS = 1


def _table_field(data: ExtractedData, field_id: str) -> ExtractedField:
    field = data.get_field(field_id)
    if field is None:
        raise FieldNotFoundError(field_id)
    if not field.is_table or not isinstance(field.value, list):
        raise ValueError(f"Field {field_id} is not a table")
    return field


def _replace_table(data: ExtractedData, field_id: str, table: List[List[str]]) -> ExtractedData:
    updated = data.model_copy(deep=True)
    for field in updated.fields:
        if field.id == field_id:
            field.value = table
            if field.layout is not None and field.layout.rows is not None:
                field.layout.rows = len(table)
    return updated


def add_table_row(data: ExtractedData, field_id: str) -> ExtractedData:
    """Append an empty row as wide as the header row; an empty table gets a blank header first"""
    field = _table_field(data, field_id)
    table = [list(row) for row in field.value]
    column_count = len(table[0]) if table and table[0] else 2
    if not table:
        table.append([""] * column_count)
    table.append([""] * column_count)
    return _replace_table(data, field_id, table)


def remove_table_row(data: ExtractedData, field_id: str, row_index: int) -> ExtractedData:
    """
    Remove one data row. Removing the header row, a row that does not exist,
    or the last remaining data row leaves the table unchanged.
    """
    field = _table_field(data, field_id)
    table = field.value
    data_rows = len(table) - 1

    if row_index <= 0 or row_index >= len(table) or data_rows <= MIN_DATA_ROWS:
        logger.debug(f"Row {row_index} of table {field_id} kept ({data_rows} data rows)")
        return data.model_copy(deep=True)

    remaining = [list(row) for index, row in enumerate(table) if index != row_index]
    return _replace_table(data, field_id, remaining)


def update_table_cell(data: ExtractedData, field_id: str, row_index: int, column_index: int, value: str) -> ExtractedData:
    field = _table_field(data, field_id)
    table = [list(row) for row in field.value]
    if not 0 <= row_index < len(table) or not 0 <= column_index < len(table[row_index]):
        raise IndexError(f"Cell ({row_index}, {column_index}) is outside table {field_id}")
    table[row_index][column_index] = value
    return _replace_table(data, field_id, table)


def select_sections(data: ExtractedData, section_ids: Iterable[str]) -> ExtractedData:
    """Mark exactly the given sections as selected for the generated document"""
    wanted = set(section_ids)
    updated = data.model_copy(deep=True)
    for section in updated.detected_sections:
        section.selected = section.id in wanted
    return updated
