from decimal import Decimal

from ledger_sync import import_spreadsheet_for_user, ledger_id_for, view_for_user
from ledger_sync.sharing import add_member, create_shared_ledger

SHEET_URL = "https://docs.google.com/spreadsheets/d/abc123/edit#gid=0"
CSV_TEXT = "Date,Description,In,Out\n2024-03-01,Paycheck,1500,\n2024-03-02,Rent,,900\n"


def test_import_for_member_lands_in_shared_ledger(db_url: str):
    create_shared_ledger("alice", database_url=db_url)
    add_member("alice", "bob", database_url=db_url)

    count = import_spreadsheet_for_user(
        SHEET_URL, "bob", database_url=db_url, fetch=lambda url: CSV_TEXT
    )

    assert count == 2
    assert ledger_id_for("bob", database_url=db_url) == "alice"
    view = view_for_user("alice", database_url=db_url)
    assert [e.record.description for e in view] == ["Paycheck", "Rent"]
    assert view.balance == Decimal("600")
