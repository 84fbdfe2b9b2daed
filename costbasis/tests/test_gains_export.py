#!/usr/bin/env python3
"""
Test Suite: Report Exporter

Verifies the exact text of the four CSV reports (column order, escaping,
number and date formatting, TOTAL row) and that the PDF renders.

Run: pytest costbasis/tests/test_gains_export.py -v
"""

import pytest
from decimal import Decimal

from costbasis.services.gains import calculate_gains_losses
from costbasis.services.reports.gains_export import (
    ASSET_SUMMARY_HEADERS,
    DISPOSAL_HEADERS,
    HOLDINGS_HEADERS,
    CSVExportOptions,
    escape_csv,
    export_asset_summary_csv,
    export_disposals_csv,
    export_holdings_csv,
    export_summary_csv,
    export_tax_report,
    format_money,
    generate_gains_report_pdf,
)

# =============================================================================
# FIXTURES
# =============================================================================

USD = CSVExportOptions(currency_symbol="$")


@pytest.fixture
def result(tx):
    ledger = [
        tx("A", "2024-01-01", "BUY", "10", "1"),
        tx("B", "2024-01-05", "BUY", "10", "2"),
        tx("S", "2024-01-10", "SELL", "15", "3", exchange="Acme, Inc."),
    ]
    return calculate_gains_losses(ledger)


def lines_of(csv_text: str):
    return csv_text.split("\n")


# =============================================================================
# ESCAPING
# =============================================================================

def test_escape_plain_value():
    assert escape_csv("BTC") == "BTC"
    assert escape_csv(None) == ""
    assert escape_csv(12) == "12"


def test_escape_comma():
    assert escape_csv("Acme, Inc.") == '"Acme, Inc."'


def test_escape_quotes_are_doubled():
    assert escape_csv('The "Best" Exchange') == '"The ""Best"" Exchange"'


def test_escape_newline():
    assert escape_csv("line1\nline2") == '"line1\nline2"'


def test_format_money_negative():
    assert format_money(Decimal("-5"), "$") == "$-5.00"
    assert format_money(Decimal("1234.567"), "$") == "$1234.57"


def test_invalid_date_format():
    with pytest.raises(ValueError):
        CSVExportOptions(date_format="JP")


# =============================================================================
# DISPOSALS
# =============================================================================

def test_disposals_csv(result):
    lines = lines_of(export_disposals_csv(result, USD))

    assert lines[0] == ",".join(DISPOSAL_HEADERS)
    assert lines[0] == (
        "Asset,Disposal Date,Amount,Proceeds,Cost Basis,Gain/Loss,Term,"
        "Holding Period (Days),Exchange,Transaction ID"
    )
    assert lines[1] == 'BTC,2024-01-10,10.00000000,$30.00,$10.00,$20.00,Short-term,9,"Acme, Inc.",S'
    assert lines[2] == 'BTC,2024-01-10,5.00000000,$15.00,$10.00,$5.00,Short-term,5,"Acme, Inc.",S'
    assert len(lines) == 3


def test_disposals_csv_without_headers(result):
    lines = lines_of(export_disposals_csv(result, CSVExportOptions(include_headers=False, currency_symbol="$")))
    assert len(lines) == 2
    assert lines[0].startswith("BTC,2024-01-10,")


@pytest.mark.parametrize("date_format, expected", [
    ("ISO", "2024-01-10"),
    ("US", "1/10/2024"),
    ("EU", "10/01/2024"),
])
def test_disposal_date_formats(result, date_format, expected):
    options = CSVExportOptions(date_format=date_format, currency_symbol="$")
    row = lines_of(export_disposals_csv(result, options))[1]
    assert row.split(",")[1] == expected


def test_long_term_label(tx):
    ledger = [
        tx("b", "2022-01-01", "BUY", "1", "10"),
        tx("s", "2024-01-01", "SELL", "1", "5"),
    ]
    row = lines_of(export_disposals_csv(calculate_gains_losses(ledger), USD))[1]
    assert row == "BTC,2024-01-01,1.00000000,$5.00,$10.00,$-5.00,Long-term,730,,s"


# =============================================================================
# ASSET SUMMARY / HOLDINGS / SUMMARY
# =============================================================================

def test_asset_summary_csv_with_total_row(result):
    lines = lines_of(export_asset_summary_csv(result, USD))

    assert lines[0] == ",".join(ASSET_SUMMARY_HEADERS)
    assert lines[1] == "BTC,$45.00,$20.00,$25.00,$25.00,$0.00,$0.00,$0.00,2"
    assert lines[2] == "TOTAL,$45.00,$20.00,$25.00,$25.00,,$0.00,,2"
    assert len(lines) == 3


def test_holdings_csv(result):
    lines = lines_of(export_holdings_csv(result, USD))

    assert lines[0] == ",".join(HOLDINGS_HEADERS)
    assert lines[1] == "BTC,5.00000000,$2.00,$10.00,2024-01-05,2024-01-05,1"


def test_summary_csv(result):
    lines = lines_of(export_summary_csv(result, USD))

    assert lines[:5] == [
        "Tax Report Summary",
        "Period,2024-01-01 - 2024-01-10",
        'Cost Basis Method,"First In, First Out"',
        "",
        "Metric,Value",
    ]
    assert "Total Proceeds,$45.00" in lines
    assert "Net Realized Gain/Loss,$25.00" in lines
    assert "Total Disposals,2" in lines
    assert "Assets Traded,1" in lines


def test_currency_symbol_option(result):
    options = CSVExportOptions(currency_symbol="€")
    row = lines_of(export_asset_summary_csv(result, options))[1]
    assert row.startswith("BTC,€45.00,€20.00,")


def test_export_tax_report_has_all_sections(result):
    report = export_tax_report(result, USD)
    assert set(report) == {"disposals", "asset_summary", "holdings", "summary"}
    assert report["holdings"] == export_holdings_csv(result, USD)


def test_empty_result_still_has_total_row():
    empty = calculate_gains_losses([])
    lines = lines_of(export_asset_summary_csv(empty, USD))
    assert lines == [",".join(ASSET_SUMMARY_HEADERS), "TOTAL,$0.00,$0.00,$0.00,$0.00,,$0.00,,0"]
    assert export_disposals_csv(empty, USD) == ",".join(DISPOSAL_HEADERS)


# =============================================================================
# PDF
# =============================================================================

def test_pdf_renders(result):
    pdf_bytes = generate_gains_report_pdf(result, USD)
    assert pdf_bytes.startswith(b"%PDF")
    assert len(pdf_bytes) > 1000


def test_pdf_renders_empty_result():
    pdf_bytes = generate_gains_report_pdf(calculate_gains_losses([]))
    assert pdf_bytes.startswith(b"%PDF")
