"""API Routes for expenses"""
from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool
from typing import List, Annotated
from services.ledger import Ledger, InvalidDateError, LedgerStoreError
from models.expense import Expense
import json
import logging

router = APIRouter()
logger = logging.getLogger(__name__)

class LedgerUnavailable(Exception):
    """Raised when no Ledger was set up for the application."""

# --- Dependency Function ---
def get_ledger(request: Request) -> Ledger:
    """Dependency to get the Ledger from the request state."""
    ledger = getattr(request.state, "ledger", None)
    if ledger is None:
        logger.error("Ledger not found in application state. Check the database connection.")
        raise LedgerUnavailable()
    return ledger

LedgerDep = Annotated[Ledger, Depends(get_ledger)]

def error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})

# --- API Routes ---

@router.post("/expenses", summary="Record Expense", description="Validates and stores a single expense, returning its assigned id.")
async def record_expense(request: Request, ledger: LedgerDep):
    """
    Decodes the JSON body and hands it to the Ledger.
    200 with the new id on success, 422 with the validation message otherwise.
    """
    logger.info("POST /expenses endpoint called.")
    raw_body = await request.body()
    # Bodies sent without Content-Length get past LimitBodySizeMiddleware.
    max_body_size = request.app.state.max_body_size
    if len(raw_body) > max_body_size:
        logger.warning(f"POST /expenses rejected: body size {len(raw_body)} exceeds limit {max_body_size}.")
        return error_response(413, f"Request body exceeds {max_body_size} bytes.")
    try:
        payload = json.loads(raw_body)
    except (UnicodeDecodeError, ValueError):
        logger.warning("POST /expenses rejected: malformed JSON body.")
        return error_response(400, "Malformed JSON body")

    try:
        result = await run_in_threadpool(ledger.record, payload)
    except LedgerStoreError as e:
        logger.error(f"Store error recording expense: {e}")
        return error_response(503, "Database service not available.")
    except Exception as e:
        logger.exception(f"Unexpected error recording expense: {e}")
        return error_response(500, "An unexpected server error occurred while recording the expense.")

    if not result.success:
        return error_response(422, result.error_message)
    return {"expense_id": result.expense_id}

@router.get("/expenses/{date}", response_model=List[Expense], summary="Get Expenses On Date", description="Retrieves every expense recorded for the given YYYY-MM-DD date.")
async def get_expenses_on(date: str, ledger: LedgerDep):
    """Returns the expenses dated `date`, or [] when there are none."""
    logger.info(f"GET /expenses/{date} endpoint called.")
    try:
        return await run_in_threadpool(ledger.expenses_on, date)
    except InvalidDateError as e:
        logger.warning(f"GET /expenses/{date} rejected: {e}")
        return error_response(400, str(e))
    except LedgerStoreError as e:
        logger.error(f"Store error fetching expenses for {date}: {e}")
        return error_response(503, "Database service not available.")
    except Exception as e:
        logger.exception(f"Unexpected error fetching expenses for {date}: {e}")
        return error_response(500, "An unexpected server error occurred while fetching expenses.")
