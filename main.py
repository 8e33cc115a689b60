from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

import logging
import os
import time

from db import Base, engine
from errors import (
    AlreadyActive,
    AlreadyClosed,
    DuplicateId,
    DuplicateSerial,
    IllegalTransition,
    InvalidInput,
    InvariantViolation,
    LifecycleError,
    NotFound,
    RepairInProgress,
)
from routers import ALL_ROUTERS

import orm  # noqa: F401  (registers the tables on Base)

# -----------------------
# Logging
# -----------------------
logging.basicConfig(
    level=os.getenv("APP_LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
)
logger = logging.getLogger("app")

app = FastAPI(title="Laptop Fleet API")

Base.metadata.create_all(bind=engine)

for router in ALL_ROUTERS:
    app.include_router(router)

@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.time()
    response = await call_next(request)
    elapsed_ms = int((time.time() - start) * 1000)
    logger.info(
        "method=%s path=%s status=%s elapsed_ms=%s",
        request.method,
        request.url.path,
        response.status_code,
        elapsed_ms,
    )
    return response

# -----------------------
# Errors
# -----------------------
STATUS_CODES = (
    (NotFound, 404),
    (DuplicateId, 409),
    (DuplicateSerial, 409),
    (IllegalTransition, 409),
    (AlreadyActive, 409),
    (AlreadyClosed, 409),
    (RepairInProgress, 409),
    (InvalidInput, 422),
)

def status_code_for(exc: LifecycleError) -> int:
    for exc_type, code in STATUS_CODES:
        if isinstance(exc, exc_type):
            return code
    return 400

@app.exception_handler(InvariantViolation)
async def invariant_violation_handler(request: Request, exc: InvariantViolation):
    logger.error("invariant violation path=%s detail=%s", request.url.path, exc.detail)
    return JSONResponse(
        status_code=500,
        content={"detail": "internal inconsistency, operation aborted", "code": exc.code},
    )

@app.exception_handler(LifecycleError)
async def lifecycle_error_handler(request: Request, exc: LifecycleError):
    return JSONResponse(status_code=status_code_for(exc), content=exc.to_dict())

@app.get("/")
def root():
    return {"message": "Laptop Fleet API", "docs": "/docs", "stats": "/stats"}
