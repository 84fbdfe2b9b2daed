#!/usr/bin/env python3
"""
Test Suite: HTTP endpoints

Drives the FastAPI app through TestClient against the isolated test
database from conftest.py:
1. /api/clients/{client_id}/transactions store / list / delete
2. /api/gains/methods and the stateless /api/gains/calculate
3. /api/gains/{client_id} as JSON, CSV and PDF
4. /api/gains/{client_id}/holdings
5. Error mapping (400 bad method, 404 unknown client, 422 oversell)

Run: pytest costbasis/tests/test_gains_api.py -v
"""

import pytest
from decimal import Decimal
from typing import Dict, List
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

from costbasis import config
from costbasis.services.transaction import load_transaction_inputs

# =============================================================================
# CONFIGURATION
# =============================================================================

CLIENT: TestClient = None


@pytest.fixture(autouse=True, scope="module")
def _set_client(api_client):
    global CLIENT
    CLIENT = api_client


BASIC_LEDGER = [
    {"id": "buy-a", "timestamp": "2024-01-01T00:00:00Z", "type": "buy", "asset": "btc", "amount": "10", "price": "1"},
    {"id": "buy-b", "timestamp": "2024-01-05T00:00:00Z", "type": "BUY", "asset": "BTC", "amount": "10", "price": "2"},
    {"id": "sell-s", "timestamp": "2024-01-10T00:00:00Z", "type": "SELL", "asset": "BTC", "amount": "15", "price": "3",
     "exchange": "Kraken"},
]


# =============================================================================
# HELPER FUNCTIONS
# =============================================================================

def seed_client(client_id: str, rows: List[Dict]) -> None:
    """Store rows for a client, prefixing ids so clients never collide."""
    for row in rows:
        body = dict(row, id=f"{client_id}-{row['id']}")
        r = CLIENT.post(f"/api/clients/{client_id}/transactions", json=body)
        assert r.status_code == 201, r.text


def gains_url(client_id: str) -> str:
    return f"/api/gains/{client_id}"


# =============================================================================
# TRANSACTION STORE
# =============================================================================

def test_store_and_list_transactions():
    seed_client("store", BASIC_LEDGER)

    r = CLIENT.get("/api/clients/store/transactions")
    assert r.status_code == 200
    rows = r.json()
    assert [row["id"] for row in rows] == ["store-buy-a", "store-buy-b", "store-sell-s"]
    assert rows[0]["asset"] == "BTC"
    assert rows[0]["type"] == "BUY"
    assert rows[0]["client_id"] == "store"
    assert float(rows[2]["amount"]) == 15


def test_stored_amounts_keep_every_digit():
    row = dict(
        BASIC_LEDGER[0],
        id="exact-buy",
        amount="1.123456789012345678",
        price="1234567890.123456789",
        fee="0.000000000000000001",
    )
    r = CLIENT.post("/api/clients/exact/transactions", json=row)
    assert r.status_code == 201, r.text
    assert r.json()["amount"] == "1.123456789012345678"

    stored = CLIENT.get("/api/clients/exact/transactions").json()[0]
    assert stored["amount"] == "1.123456789012345678"
    assert stored["price"] == "1234567890.123456789"
    assert Decimal(stored["fee"]) == Decimal("0.000000000000000001")


def test_stored_ledger_feeds_engine_exact_values(test_engine):
    seed_client("exact2", [
        dict(BASIC_LEDGER[0], amount="0.000000000000000003", price="1000000000000.000000000001"),
    ])
    db = sessionmaker(bind=test_engine)()
    try:
        inputs = load_transaction_inputs(db, "exact2")
    finally:
        db.close()

    assert Decimal(inputs[0].amount) == Decimal("0.000000000000000003")
    assert Decimal(inputs[0].price) == Decimal("1000000000000.000000000001")


def test_duplicate_transaction_id_conflicts():
    seed_client("dup", BASIC_LEDGER[:1])
    r = CLIENT.post("/api/clients/dup/transactions", json=dict(BASIC_LEDGER[0], id="dup-buy-a"))
    assert r.status_code == 409


def test_negative_amount_rejected_on_store():
    r = CLIENT.post("/api/clients/neg/transactions", json=dict(BASIC_LEDGER[0], amount="-1"))
    assert r.status_code == 422


def test_delete_transactions():
    seed_client("wipe", BASIC_LEDGER)
    r = CLIENT.delete("/api/clients/wipe/transactions")
    assert r.status_code == 200
    assert r.json()["deleted_count"] == 3
    assert CLIENT.get("/api/clients/wipe/transactions").json() == []


# =============================================================================
# STATELESS ENDPOINTS
# =============================================================================

def test_methods():
    r = CLIENT.get("/api/gains/methods")
    assert r.status_code == 200
    methods = {m["method"]: m["label"] for m in r.json()}
    assert methods == {
        "FIFO": "First In, First Out",
        "LIFO": "Last In, First Out",
        "AVERAGE_COST": "Average Cost",
    }


def test_calculate_from_body():
    r = CLIENT.post("/api/gains/calculate", json={"transactions": BASIC_LEDGER, "method": "lifo"})
    assert r.status_code == 200, r.text
    data = r.json()

    assert data["success"] is True
    assert data["method"] == "LIFO"
    events = data["result"]["disposal_events"]
    assert [(e["lot_id"], e["gain_loss"]) for e in events] == [("buy-b", 10.0), ("buy-a", 10.0)]
    assert data["result"]["summary"]["net_realized_gain_loss"] == 20.0
    assert data["quick_stats"]["disposal_count"] == 2
    assert data["quick_stats"]["net_gain_loss"]["formatted"].endswith("20.00")


def test_calculate_with_prices():
    body = {"transactions": BASIC_LEDGER, "prices": {"BTC": "4"}}
    holding = CLIENT.post("/api/gains/calculate", json=body).json()["result"]["current_holdings"][0]
    assert holding["current_value"] == 20.0
    assert holding["unrealized_gain_loss"] == 10.0


def test_calculate_oversell_is_422():
    body = {
        "transactions": [BASIC_LEDGER[2]],
        "oversell_policy": "reject",
    }
    r = CLIENT.post("/api/gains/calculate", json=body)
    assert r.status_code == 422
    assert "only 0" in r.json()["detail"]


def test_calculate_invalid_method_is_422():
    r = CLIENT.post("/api/gains/calculate", json={"transactions": BASIC_LEDGER, "method": "HIFO"})
    assert r.status_code == 422


# =============================================================================
# STORED LEDGER
# =============================================================================

def test_client_gains_json():
    seed_client("json", BASIC_LEDGER)
    r = CLIENT.get(gains_url("json"))
    assert r.status_code == 200, r.text
    data = r.json()

    assert data["client_id"] == "json"
    assert data["method"] in ("FIFO", "LIFO", "AVERAGE_COST")

    r = CLIENT.get(gains_url("json"), params={"method": "fifo"})
    assert r.json()["method"] == "FIFO"
    summary = r.json()["result"]["summary"]
    assert summary["total_proceeds"] == 45.0
    assert summary["total_cost_basis"] == 20.0
    assert summary["net_realized_gain_loss"] == 25.0
    assert r.json()["result"]["period"]["start"].startswith("2024-01-01")


def test_client_gains_window():
    seed_client("window", BASIC_LEDGER)
    params = {"method": "FIFO", "start_date": "2024-01-11T00:00:00Z"}
    result = CLIENT.get(gains_url("window"), params=params).json()["result"]

    assert result["disposal_events"] == []
    assert result["current_holdings"][0]["total_amount"] == 5.0


def test_client_gains_csv():
    seed_client("csv", BASIC_LEDGER)
    r = CLIENT.get(gains_url("csv"), params={"method": "fifo", "format": "csv"})

    assert r.status_code == 200
    assert r.headers["content-type"].startswith("text/csv")
    assert 'filename="gains-losses-csv-FIFO.csv"' in r.headers["content-disposition"]
    lines = r.text.split("\n")
    assert lines[0].startswith("Asset,Disposal Date,Amount,Proceeds")
    assert lines[1].endswith(",Kraken,csv-sell-s")


def test_client_gains_csv_other_reports():
    seed_client("csv2", BASIC_LEDGER)
    r = CLIENT.get(gains_url("csv2"), params={"method": "FIFO", "format": "csv", "report": "asset_summary"})
    assert r.status_code == 200
    assert r.text.split("\n")[-1].startswith("TOTAL,")
    assert "asset_summary" in r.headers["content-disposition"]

    r = CLIENT.get(gains_url("csv2"), params={"format": "csv", "report": "summary", "date_format": "US"})
    assert r.text.startswith("Tax Report Summary")


def test_client_gains_pdf():
    seed_client("pdf", BASIC_LEDGER)
    r = CLIENT.get(gains_url("pdf"), params={"format": "pdf"})
    assert r.status_code == 200
    assert r.headers["content-type"] == "application/pdf"
    assert r.content.startswith(b"%PDF")


def test_client_gains_errors():
    seed_client("errors", BASIC_LEDGER)

    assert CLIENT.get(gains_url("errors"), params={"method": "HIFO"}).status_code == 400
    assert CLIENT.get(gains_url("errors"), params={"format": "xml"}).status_code == 422
    assert CLIENT.get(gains_url("errors"), params={"price": "BTC"}).status_code == 400
    assert CLIENT.get(gains_url("nobody")).status_code == 404


def test_client_gains_oversell():
    seed_client("short", BASIC_LEDGER[2:])
    r = CLIENT.get(gains_url("short"), params={"oversell_policy": "reject"})
    assert r.status_code == 422

    r = CLIENT.get(gains_url("short"), params={"oversell_policy": "truncate"})
    assert r.status_code == 200
    assert r.json()["result"]["disposal_events"] == []


def test_misconfigured_oversell_policy_is_422(monkeypatch):
    seed_client("badcfg", BASIC_LEDGER)
    monkeypatch.setattr(config, "OVERSELL_POLICY", "sometimes")

    r = CLIENT.get(gains_url("badcfg"))
    assert r.status_code == 422
    assert "oversell policy" in r.json()["detail"]


# =============================================================================
# HOLDINGS
# =============================================================================

def test_client_holdings_at_date():
    seed_client("hold", BASIC_LEDGER)
    r = CLIENT.get(
        f"{gains_url('hold')}/holdings",
        params={"date": "2024-01-07T00:00:00Z", "price": ["BTC=3"]},
    )
    assert r.status_code == 200, r.text
    snapshot = r.json()["snapshot"]

    assert snapshot["holdings"][0]["total_amount"] == 20.0
    assert snapshot["total_cost_basis"] == 30.0
    assert snapshot["total_value"] == 60.0


def test_client_holdings_default_date():
    seed_client("hold2", BASIC_LEDGER)
    r = CLIENT.get(f"{gains_url('hold2')}/holdings", params={"method": "FIFO"})
    snapshot = r.json()["snapshot"]

    assert snapshot["holdings"][0]["total_amount"] == 5.0
    assert snapshot["total_value"] is None
    assert CLIENT.get(f"{gains_url('nobody')}/holdings").status_code == 404
