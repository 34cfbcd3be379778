from fastapi import FastAPI, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded
import io
import structlog
import time
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Literal, Optional
from zoneinfo import ZoneInfo

from models import (
    ErrorResponse,
    HealthResponse,
    LedgerReport,
    TransactionBatchRequest,
)
from services import TransactionProcessor, get_transaction_processor
from ingestion import IngestionError, read_transactions
from reporting import format_accounts_csv
from logging_config import configure_logging
from config import get_settings

settings = get_settings()

# Configure structured logging
configure_logging(settings)

logger = structlog.get_logger()

# Rate limiting
limiter = Limiter(key_func=get_remote_address, enabled=settings.enable_rate_limiting)
rate_limit = f"{settings.rate_limit_per_minute}/minute"

# Application lifespan
@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    logger.info("Starting Ledger API")
    yield
    # Shutdown
    logger.info("Shutting down Ledger API")

# Create FastAPI app
app = FastAPI(
    title=settings.app_name,
    description="Applies ordered streams of deposits, withdrawals, disputes, resolves and chargebacks and reports final client balances",
    version=settings.app_version,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan
)

# Add rate limiting
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins,
    allow_credentials=True,
    allow_methods=settings.allowed_methods,
    allow_headers=settings.allowed_headers,
)

# Request logging middleware
@app.middleware("http")
async def log_requests(request: Request, call_next):
    start_time = time.time()

    # Log request
    logger.info(
        "Request started",
        method=request.method,
        url=str(request.url),
        client_ip=request.client.host if request.client else None
    )

    response = await call_next(request)

    # Log response
    process_time = time.time() - start_time
    logger.info(
        "Request completed",
        method=request.method,
        url=str(request.url),
        status_code=response.status_code,
        process_time=round(process_time, 4)
    )

    return response


def build_report(processor: TransactionProcessor, summary) -> LedgerReport:
    return LedgerReport(
        accounts=sorted(processor.snapshot(), key=lambda s: s.client),
        summary=summary,
        generated_at=datetime.now(ZoneInfo(settings.timezone))
    )

# Health check endpoint
@app.get(
    "/health",
    response_model=HealthResponse,
    summary="Health Check",
    description="Check API health"
)
async def health_check():
    return HealthResponse(
        status="healthy",
        app_name=settings.app_name,
        version=settings.app_version
    )

# Batch of typed transactions
@app.post(
    "/ledger/transactions",
    response_model=LedgerReport,
    summary="Process Transactions",
    description="Apply a batch of transactions, in order, to an empty ledger and return the final balances",
    responses={
        200: {"description": "Batch processed; discarded transactions are counted in the summary"},
        422: {"description": "Validation error"},
        429: {"description": "Rate limit exceeded"},
        500: {"description": "Internal server error"}
    }
)
@limiter.limit(rate_limit)
async def process_transactions(request: Request, batch: TransactionBatchRequest):
    logger.info("Transaction batch received", transactions=len(batch.transactions))

    processor = get_transaction_processor(settings)
    summary = processor.process_all(batch.transactions)
    return build_report(processor, summary)

# Raw CSV upload
@app.post(
    "/ledger/csv",
    response_model=LedgerReport,
    summary="Process CSV",
    description="Apply a CSV transaction stream (type, client, tx, amount) and return the final balances",
    responses={
        200: {"description": "Stream processed"},
        413: {"description": "Request body too large"},
        422: {"description": "Malformed CSV input"},
        429: {"description": "Rate limit exceeded"},
        500: {"description": "Internal server error"}
    }
)
@limiter.limit(rate_limit)
async def process_csv(
    request: Request,
    output_format: Literal["json", "csv"] = Query("json", alias="format"),
    on_malformed: Optional[Literal["skip", "fail"]] = None
):
    body = await request.body()
    if len(body) > settings.max_request_size:
        logger.warning("CSV upload too large", size=len(body), limit=settings.max_request_size)
        raise HTTPException(
            status_code=413,
            detail="Request body too large"
        )

    # invalid bytes reach ingestion as surrogates and are handled by the row policy
    text = body.decode("utf-8-sig", errors="surrogateescape")

    processor = get_transaction_processor(settings)
    policy = on_malformed or settings.malformed_row_policy
    try:
        summary = processor.process_all(read_transactions(io.StringIO(text), on_malformed=policy))
    except IngestionError as e:
        logger.warning("CSV ingestion failed", error=str(e))
        raise HTTPException(
            status_code=422,
            detail=str(e)
        )

    if output_format == "csv":
        return PlainTextResponse(
            format_accounts_csv(processor.snapshot(), precision=settings.output_precision),
            media_type="text/csv"
        )
    return build_report(processor, summary)

# Global exception handler
@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(
            detail=exc.detail,
            error_code=f"HTTP_{exc.status_code}"
        ).model_dump(mode="json")
    )

@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    logger.error(
        "Unhandled exception",
        error=str(exc),
        url=str(request.url),
        method=request.method,
        exc_info=True
    )

    return JSONResponse(
        status_code=500,
        content=ErrorResponse(
            detail="Internal server error",
            error_code="INTERNAL_ERROR"
        ).model_dump(mode="json")
    )

# Root endpoint
@app.get("/", include_in_schema=False)
async def root():
    return {"message": settings.app_name, "docs": "/docs"}

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_level=settings.log_level.lower()
    )
