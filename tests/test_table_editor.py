import pytest

from chemdoc.services.errors import FieldNotFoundError
from chemdoc.services.normalizer import normalize_extraction
from chemdoc.services.table_editor import (
    add_table_row,
    remove_table_row,
    select_sections,
    update_table_cell,
)

from conftest import raw_extraction

HEADER = ["Test", "Specification", "Result"]


@pytest.fixture
def data():
    return normalize_extraction(raw_extraction())


def _table_id(data):
    return next(field.id for field in data.fields if field.is_table)


def test_add_row_matches_header_width(data):
    table_id = _table_id(data)

    updated = add_table_row(data, table_id)

    assert updated.get_field(table_id).value[-1] == ["", "", ""]
    assert updated.get_field(table_id).layout.rows == 3
    # the input is left alone
    assert len(data.get_field(table_id).value) == 2


def test_add_row_to_empty_table_adds_header_first(data):
    table_id = _table_id(data)
    emptied = data.model_copy(deep=True)
    emptied.get_field(table_id).value = []

    updated = add_table_row(emptied, table_id)

    assert updated.get_field(table_id).value == [["", ""], ["", ""]]


def test_remove_header_row_is_noop(data):
    table_id = _table_id(data)
    data = add_table_row(data, table_id)

    updated = remove_table_row(data, table_id, 0)

    assert updated.get_field(table_id).value == data.get_field(table_id).value
    assert updated.get_field(table_id).value[0] == HEADER


def test_last_data_row_is_kept(data):
    table_id = _table_id(data)

    updated = remove_table_row(data, table_id, 1)

    assert updated.get_field(table_id).value == [HEADER, ["Purity", ">= 99.5%", "99.8%"]]


def test_remove_data_row(data):
    table_id = _table_id(data)
    data = add_table_row(data, table_id)

    updated = remove_table_row(data, table_id, 1)

    assert updated.get_field(table_id).value == [HEADER, ["", "", ""]]


def test_remove_out_of_range_is_noop(data):
    table_id = _table_id(data)
    data = add_table_row(data, table_id)

    assert remove_table_row(data, table_id, 7).get_field(table_id).value == data.get_field(table_id).value


def test_update_cell(data):
    table_id = _table_id(data)

    updated = update_table_cell(data, table_id, 1, 2, "99.9%")

    assert updated.get_field(table_id).value[1][2] == "99.9%"
    with pytest.raises(IndexError):
        update_table_cell(data, table_id, 5, 0, "x")


def test_unknown_field(data):
    with pytest.raises(FieldNotFoundError):
        add_table_row(data, "no_such_field")


def test_non_table_field(data):
    with pytest.raises(ValueError):
        add_table_row(data, "cas_number")


def test_select_sections(data):
    first, second = data.detected_sections

    updated = select_sections(data, [second.id])

    assert [section.selected for section in updated.detected_sections] == [False, True]
    assert [section.selected for section in data.detected_sections] == [True, True]
