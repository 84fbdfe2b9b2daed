"""
costbasis/routers/gains.py

API endpoints for realized gains/losses. main.py mounts this router at
/api/gains.

  - GET  /methods                 cost basis methods with labels/descriptions
  - POST /calculate               stateless: full ledger in the body
  - GET  /{client_id}             stored ledger for a client, JSON/CSV/PDF
  - GET  /{client_id}/holdings    holdings snapshot at a date

The computation lives in costbasis/services/gains.py; this module only
parses parameters, loads the client's FULL ledger, and renders the result.
"""

from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response
from sqlalchemy.orm import Session

from costbasis import config
from costbasis.database import get_db
from costbasis.schemas.gains import (
    COST_BASIS_METHODS,
    CostBasisMethod,
    GainsLossesResult,
    GainsRequest,
    OversellPolicy,
)
from costbasis.services import gains as gains_service
from costbasis.services.gains import GainsCalculationError
from costbasis.services.reports import gains_export
from costbasis.services.transaction import load_transaction_inputs

router = APIRouter(tags=["gains"])


def convert_decimal(item):
    """Recursively turn Decimals into floats for JSON output."""
    if isinstance(item, Decimal):
        return float(item)
    if isinstance(item, dict):
        return {key: convert_decimal(value) for key, value in item.items()}
    if isinstance(item, list):
        return [convert_decimal(subitem) for subitem in item]
    return item


def _parse_method(method: Optional[str]) -> CostBasisMethod:
    raw = (method or config.DEFAULT_COST_BASIS_METHOD).strip().upper()
    try:
        return CostBasisMethod(raw)
    except ValueError:
        raise HTTPException(
            status_code=400,
            detail="Invalid cost basis method. Use FIFO, LIFO, or AVERAGE_COST",
        )


def _parse_prices(entries: List[str]) -> Optional[Dict[str, Decimal]]:
    """'BTC=50000' style query values -> {'BTC': Decimal('50000')}."""
    if not entries:
        return None
    prices: Dict[str, Decimal] = {}
    for entry in entries:
        asset, sep, value = entry.partition("=")
        try:
            if not sep or not asset.strip():
                raise InvalidOperation
            prices[asset.strip().upper()] = Decimal(value.strip())
        except InvalidOperation:
            raise HTTPException(status_code=400, detail=f"Invalid price entry '{entry}', expected ASSET=PRICE")
    return prices


def _run(calculation, *args, **kwargs):
    try:
        return calculation(*args, **kwargs)
    except GainsCalculationError as e:
        raise HTTPException(status_code=422, detail=str(e))


def _render_json(result: GainsLossesResult, **extra) -> Dict:
    payload = {"success": True, **extra, "result": result.model_dump()}
    payload["quick_stats"] = gains_service.get_quick_stats(result).model_dump()
    return convert_decimal(payload)


@router.get("/methods")
def api_get_methods() -> List[Dict]:
    """
    The supported cost basis methods, for populating a selector.
    """
    return [
        {"method": method.value, **details}
        for method, details in COST_BASIS_METHODS.items()
    ]


@router.post("/calculate")
def api_calculate_gains(request: GainsRequest) -> Dict:
    """
    Calculate gains/losses for a ledger supplied in the request body.

    'transactions' must be the complete history; start_date/end_date only
    choose which disposals are reported.
    """
    result = _run(
        gains_service.calculate_gains_losses,
        request.transactions,
        request.method,
        start_date=request.start_date,
        end_date=request.end_date,
        prices=request.prices,
        oversell_policy=request.oversell_policy,
    )
    return _render_json(result, method=result.method.value)


@router.get("/{client_id}")
def api_get_client_gains(
    client_id: str,
    method: Optional[str] = Query(None, description="FIFO, LIFO or AVERAGE_COST"),
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    format: str = Query("json", pattern="^(json|csv|pdf)$"),
    report: str = Query("disposals", pattern="^(disposals|asset_summary|holdings|summary)$"),
    date_format: str = Query("ISO", pattern="^(ISO|US|EU)$"),
    price: List[str] = Query(default=[], description="Current price as ASSET=PRICE, repeatable"),
    oversell_policy: Optional[OversellPolicy] = None,
    db: Session = Depends(get_db),
):
    """
    Gains/losses for a client's stored ledger.

    - format=json: result envelope plus quick stats
    - format=csv: one CSV section chosen by 'report', as a download
    - format=pdf: all sections rendered as a PDF download
    """
    cost_method = _parse_method(method)
    prices = _parse_prices(price)
    transactions = load_transaction_inputs(db, client_id)

    result = _run(
        gains_service.calculate_gains_losses,
        transactions,
        cost_method,
        start_date=start_date,
        end_date=end_date,
        prices=prices,
        oversell_policy=oversell_policy,
    )

    if format == "json":
        return _render_json(result, client_id=client_id, method=cost_method.value)

    options = gains_export.CSVExportOptions(date_format=date_format)
    if format == "csv":
        content = gains_export.REPORT_EXPORTERS[report](result, options)
        file_name = f"gains-losses-{client_id}-{cost_method.value}.csv"
        if report != "disposals":
            file_name = f"gains-losses-{client_id}-{cost_method.value}-{report}.csv"
        return Response(
            content=content,
            media_type="text/csv",
            headers={"Content-Disposition": f'attachment; filename="{file_name}"'},
        )

    pdf_bytes = gains_export.generate_gains_report_pdf(result, options)
    return Response(
        content=pdf_bytes,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="gains-losses-{client_id}-{cost_method.value}.pdf"'},
    )


@router.get("/{client_id}/holdings")
def api_get_client_holdings(
    client_id: str,
    date: Optional[datetime] = None,
    method: Optional[str] = Query(None, description="FIFO, LIFO or AVERAGE_COST"),
    price: List[str] = Query(default=[], description="Price at 'date' as ASSET=PRICE, repeatable"),
    db: Session = Depends(get_db),
) -> Dict:
    """
    Holdings as of 'date' (default: after the last stored transaction).
    """
    cost_method = _parse_method(method)
    prices = _parse_prices(price)
    transactions = load_transaction_inputs(db, client_id)
    target = date or max(tx.timestamp for tx in transactions)

    snapshot = _run(
        gains_service.calculate_holdings_at_date,
        transactions,
        target,
        prices=prices,
        method=cost_method,
    )
    return convert_decimal({"client_id": client_id, "snapshot": snapshot.model_dump()})
