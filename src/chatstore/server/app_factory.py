from contextlib import asynccontextmanager
from typing import Optional
from uuid import uuid4

from fastapi import FastAPI, Request

from chatstore.api.v1.chats import router as chats_router
from chatstore.api.v1.status import router as status_router
from chatstore.config.config import AppSettings
from chatstore.services.logger.std import StdLoggerService
from chatstore.storage.factory import build_store
from chatstore.storage.kv.store import KeyValueStore


def create_app(
    *,
    root: Optional[str] = None,
    cfg: Optional["AppSettings"] = None,
    store: Optional[KeyValueStore] = None,
    logger_service: Optional[StdLoggerService] = None,
) -> FastAPI:
    """
    Builds the FastAPI app, registers routers, and attaches the store to
    app.state.store. The store is opened on startup and closed (with a final
    flush if dirty) on shutdown.
    """

    settings = cfg or AppSettings()
    if root is not None:
        settings = settings.model_copy(update={"root": root})

    kv = store or build_store(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # --- Startup: open the store (loads both documents) ---
        await kv.open()
        try:
            # Hand control back to FastAPI / TestClient
            yield
        finally:
            # --- Shutdown: flush anything pending and release the data dir ---
            await kv.close()

    app = FastAPI(
        title="chatstore",
        version="0.1",
        lifespan=lifespan,
    )

    # Routers
    app.include_router(router=status_router, prefix="/api/v1")
    app.include_router(router=chats_router, prefix="/api/v1")

    if logger_service is not None:

        @app.middleware("http")
        async def log_requests(request: Request, call_next):
            req_id = request.headers.get("X-Request-ID") or uuid4().hex[:12]
            log = logger_service.for_request_ctx(
                request_id=req_id, user_id=request.headers.get("X-User-ID")
            )
            response = await call_next(request)
            log.info("%s %s -> %d", request.method, request.url.path, response.status_code)
            response.headers["X-Request-ID"] = req_id
            return response

    app.state.settings = settings
    app.state.store = kv
    app.state.logger = logger_service

    return app
