import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import uvicorn

from expense_approval.config import settings
from expense_approval.database import db
from expense_approval.errors import CommitOutcomeUnknownError, ConflictError, NotFoundError, ValidationError
from expense_approval.api import expenses
from expense_approval.workflow.escalation import escalation_monitor

# Setup Logging
logging.basicConfig(level=settings.LOG_LEVEL)
logger = logging.getLogger(__name__)

@asynccontextmanager
async def lifespan(app: FastAPI):
    db.connect()
    sweep_task = None
    if settings.ESCALATION_SWEEP_ENABLED:
        sweep_task = asyncio.create_task(
            escalation_monitor.start_polling(settings.ESCALATION_SWEEP_INTERVAL_SECONDS)
        )
    yield
    if sweep_task:
        await escalation_monitor.stop()
        sweep_task.cancel()
        try:
            await sweep_task
        except asyncio.CancelledError:
            pass
    db.close()

app = FastAPI(
    title="Expense Approval Engine API",
    description="Multi-level expense approval workflows with parallel quorum, bypass and SLA escalation",
    version="1.0.0",
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Engine errors -> HTTP
@app.exception_handler(NotFoundError)
async def not_found_handler(request: Request, exc: NotFoundError):
    logger.warning(f"{request.method} {request.url.path}: {exc}")
    return JSONResponse(status_code=404, content={"detail": str(exc)})

@app.exception_handler(ValidationError)
async def validation_handler(request: Request, exc: ValidationError):
    logger.warning(f"{request.method} {request.url.path}: {exc}")
    return JSONResponse(status_code=400, content={"detail": str(exc)})

@app.exception_handler(ConflictError)
async def conflict_handler(request: Request, exc: ConflictError):
    logger.warning(f"{request.method} {request.url.path}: {exc}")
    return JSONResponse(status_code=409, content={"detail": str(exc)})

@app.exception_handler(CommitOutcomeUnknownError)
async def commit_unknown_handler(request: Request, exc: CommitOutcomeUnknownError):
    logger.error(f"{request.method} {request.url.path}: {exc}")
    return JSONResponse(status_code=503, content={"detail": str(exc)})

# Router Registration
app.include_router(expenses.router)

# Health Check
@app.get("/health")
async def health_check():
    return {"status": "ok", "environment": settings.ENVIRONMENT}

if __name__ == "__main__":
    uvicorn.run("expense_approval.main:app", host="0.0.0.0", port=8000, reload=True)
