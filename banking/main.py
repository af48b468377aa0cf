
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from banking.api.endpoints import router
from banking.core.config import settings
from banking.db.session import engine, init_db
from banking.exceptions import LedgerError
from banking.outcomes import outcome_status_for

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    await init_db(engine)
    yield
    await engine.dispose()


app = FastAPI(title=settings.PROJECT_NAME, lifespan=lifespan)
app.include_router(router, prefix="/api")


@app.exception_handler(LedgerError)
async def ledger_error_handler(request: Request, exc: LedgerError) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "detail": exc.detail,
            "kind": exc.kind.value,
            "outcome": outcome_status_for(exc).value,
            "retryable": exc.retryable,
        },
    )


@app.exception_handler(ValueError)
async def value_error_handler(request: Request, exc: ValueError) -> JSONResponse:
    logger.debug(f"Rejected request to {request.url.path}: {exc}")
    return JSONResponse(status_code=400, content={"detail": str(exc)})
