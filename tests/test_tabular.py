import textwrap

from ledger_sync.tabular import parse_table


def _dedent(s: str) -> str:
    return textwrap.dedent(s).lstrip("\n")


def test_header_and_rows():
    text = _dedent(
        """
        Date,Description,Out
        01/02/2024,Coffee,4.50
        01/03/2024,Lunch,12.00
        """
    )
    assert parse_table(text) == [
        {"Date": "01/02/2024", "Description": "Coffee", "Out": "4.50"},
        {"Date": "01/03/2024", "Description": "Lunch", "Out": "12.00"},
    ]


def test_quoted_fields_keep_commas_newlines_and_quotes():
    text = 'Description,Out\n"Dinner, with ""friends""\nand family",80\n'
    rows = parse_table(text)
    assert rows == [{"Description": 'Dinner, with "friends"\nand family', "Out": "80"}]


def test_bom_blank_lines_and_trimming():
    text = "\ufeff Date , Out \r\n\r\n 01/02/2024 ,  5 \r\n,\r\n"
    assert parse_table(text) == [{"Date": "01/02/2024", "Out": "5"}]


def test_mismatched_rows_are_dropped():
    text = "a,b\n1,2\n3\n4,5,6\n7,8\n"
    assert parse_table(text) == [{"a": "1", "b": "2"}, {"a": "7", "b": "8"}]


def test_empty_and_header_only():
    assert parse_table("") == []
    assert parse_table("\n\n") == []
    assert parse_table("Date,Out\n") == []
