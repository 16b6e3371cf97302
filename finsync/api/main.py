"""
finsync HTTP API.

Run with `finsync-api` (uvicorn) or mount `app` in another ASGI server.
"""
import time
import uuid

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from finsync import __version__
from finsync.api.endpoints import accounts, stats, sync, transactions, upload
from finsync.common.config import load_settings
from finsync.common.logging_config import get_logger, set_request_id, setup_logging

REQUEST_ID_HEADER = "X-Request-ID"

settings = load_settings()
setup_logging(settings.log_level_value, settings.log_file)
logger = get_logger(__name__)

app = FastAPI(title="finsync API", version=__version__)


@app.middleware("http")
async def request_context(request: Request, call_next):
    """Tag every log line of the request with one id and time the call."""
    request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
    set_request_id(request_id)
    started = time.perf_counter()

    def elapsed_ms() -> float:
        return round((time.perf_counter() - started) * 1000, 2)

    try:
        response = await call_next(request)
    except Exception as e:
        logger.error(
            f"{request.method} {request.url.path} failed: {e}",
            method=request.method,
            path=request.url.path,
            duration_ms=elapsed_ms(),
            exc_info=True,
        )
        raise

    log = logger.warning if response.status_code >= 400 else logger.info
    log(
        f"{request.method} {request.url.path} -> {response.status_code}",
        method=request.method,
        path=request.url.path,
        query=str(request.url.query) or None,
        status_code=response.status_code,
        duration_ms=elapsed_ms(),
    )
    response.headers[REQUEST_ID_HEADER] = request_id
    return response


app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST"],
    allow_headers=["*"],
    expose_headers=[REQUEST_ID_HEADER],
)

app.include_router(sync.router, prefix="/api/sync", tags=["Sync"])
app.include_router(accounts.router, prefix="/api/accounts", tags=["Accounts"])
app.include_router(transactions.router, prefix="/api/transactions", tags=["Transactions"])
app.include_router(upload.router, prefix="/api/import", tags=["Import"])
app.include_router(stats.router, prefix="/api/stats", tags=["Statistics"])


@app.get("/api/health")
def health():
    return {"status": "ok", "app": "finsync", "version": __version__}


def run():
    import uvicorn

    logger.info("Starting API server.", host=settings.api_host, port=settings.api_port)
    uvicorn.run(app, host=settings.api_host, port=settings.api_port, log_config=None)


if __name__ == "__main__":
    run()
