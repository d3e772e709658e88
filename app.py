from __future__ import annotations

import contextlib
import logging

from fastapi import FastAPI
from fastapi.responses import JSONResponse, RedirectResponse

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

@contextlib.asynccontextmanager
async def lifespan(app: FastAPI):
    from endpoints.mcp_endpoints import mcp

    async with mcp.session_manager.run():
        yield


def create_app() -> FastAPI:
    load_dotenv("local.env")

    from settings import get_settings

    settings = get_settings()
    logging.basicConfig(level=settings.log_level)

    from endpoints.mcp_endpoints import mcp

    mcp.settings.streamable_http_path = "/"

    app = FastAPI(lifespan=lifespan)

    @app.post("/mcp")
    async def mcp_redirect_post():
        return RedirectResponse(url="/mcp/", status_code=307)

    @app.get("/mcp")
    async def mcp_redirect_get():
        return RedirectResponse(url="/mcp/", status_code=307)

    @app.get("/healthz")
    async def healthz():
        return JSONResponse(
            {
                "status": "ok",
                "store": settings.store_path or "~/kvstore.iod",
                "section": settings.store_section,
            }
        )

    app.mount("/mcp", mcp.streamable_http_app())

    logger.info("Serving IOD key-value store %s [%s]", settings.store_path or "~/kvstore.iod", settings.store_section)
    return app


app = create_app()
