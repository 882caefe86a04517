import pytest

from livestock_import.domain.imports.processors.csv_parser import (
    EmptyInputError,
    FileReadError,
    UnsupportedFileTypeError,
    detect_delimiter,
    parse_csv_text,
    parse_csv_upload,
    parse_line,
)


def test_example_file_drops_blank_row():
    table = parse_csv_text("Tag,Animal,Weight\nA1,cow,500\n,,\nA2,Boer goat,45")

    assert table.headers == ("Tag", "Animal", "Weight")
    assert table.rows == (("A1", "cow", "500"), ("A2", "Boer goat", "45"))
    assert table.delimiter == ","


@pytest.mark.parametrize(
    "first_line, expected",
    [
        ("a;b,c", ";"),
        ("a\tb,c", "\t"),
        ("a\tb;c", ";"),
        ("a,b,c", ","),
        ("single", ","),
    ],
)
def test_delimiter_priority(first_line, expected):
    assert detect_delimiter(first_line) == expected


def test_delimiter_is_sniffed_from_first_line_only():
    table = parse_csv_text("Tag,Name\nA1;x,Daisy")
    assert table.delimiter == ","
    assert table.rows == (("A1;x", "Daisy"),)


def test_semicolon_file_with_crlf_endings():
    table = parse_csv_text("Tag;Name;Cost\r\nA1;Daisy;R 1,250.50\r\n")

    assert table.headers == ("Tag", "Name", "Cost")
    assert table.rows == (("A1", "Daisy", "R 1,250.50"),)


def test_tab_delimited_file():
    table = parse_csv_text("Tag\tName\nA1\tDaisy")
    assert table.rows == (("A1", "Daisy"),)


def test_quoted_delimiter_stays_in_cell():
    assert parse_line('A1,"Daisy, the cow",500', ",") == ["A1", "Daisy, the cow", "500"]


def test_quote_mid_cell_toggles_state():
    assert parse_line('A1,ab"c,d"e,f', ",") == ["A1", "abc,de", "f"]


def test_unterminated_quote_runs_to_end_of_line():
    assert parse_line('A1,"open,cell', ",") == ["A1", "open,cell"]
    table = parse_csv_text('Tag,Notes\nA1,"open,cell\nA2,closed')
    assert table.rows == (("A1", "open,cell"), ("A2", "closed"))


def test_cells_are_trimmed():
    assert parse_line("  A1 ,  Daisy  ,", ",") == ["A1", "Daisy", ""]


def test_whitespace_only_rows_are_dropped_anywhere():
    text = "Tag,Name\n  ,   \nA1,Daisy\n\t\n , \nA2,Bella\n,"
    table = parse_csv_text(text)
    assert table.rows == (("A1", "Daisy"), ("A2", "Bella"))


def test_short_rows_read_as_empty_trailing_cells():
    table = parse_csv_text("Tag,Name,Breed\nA1,Daisy")
    row = table.rows[0]
    assert table.cell(row, 2) == ""
    assert table.cell(row, -1) == ""


def test_round_trip_for_plain_cells():
    headers = ["Tag", "Name", "Breed"]
    rows = [["A1", "Daisy", "Nguni"], ["A2", "Bella", "Angus"], ["A3", "Rosie", "Boer"]]
    for delimiter in (",", ";", "\t"):
        text = "\n".join(delimiter.join(line) for line in [headers] + rows)
        table = parse_csv_text(text)
        assert table.delimiter == delimiter
        assert list(table.headers) == headers
        assert [list(row) for row in table.rows] == rows


@pytest.mark.parametrize("text", ["", "\n\n", "   \r\n  \n"])
def test_empty_input_raises(text):
    with pytest.raises(EmptyInputError):
        parse_csv_text(text)


def test_upload_rejects_non_csv_extension():
    with pytest.raises(UnsupportedFileTypeError):
        parse_csv_upload(b"Tag\nA1", "animals.xlsx")


def test_upload_accepts_uppercase_extension_and_bom():
    table = parse_csv_upload("\ufeffTag,Name\nA1,Daisy".encode("utf-8"), "HERD.CSV")
    assert table.headers == ("Tag", "Name")


def test_upload_with_binary_content_is_a_read_failure():
    with pytest.raises(FileReadError):
        parse_csv_upload(b"\xff\xfe\x00\x81\x9f", "animals.csv")


def test_upload_with_only_blank_headers_is_accepted():
    table = parse_csv_upload(b",,\nA1,cow,500", "animals.csv")

    assert table.headers == ("", "", "")
    assert table.rows == (("A1", "cow", "500"),)
