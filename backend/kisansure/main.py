import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from kisansure import __version__, di
from kisansure.config import get_settings, settings
from kisansure.http import init_http, close_http, setup_logging
from kisansure.routers import agmarknet, board

setup_logging(settings.LOG_LEVEL)
log = logging.getLogger("kisansure.main")


@asynccontextmanager
async def lifespan(_: FastAPI):
    """Open the shared HTTP client on startup, close it on shutdown."""
    await init_http()
    log.info("HTTP client initialized")
    yield
    await close_http()
    di.reset()
    log.info("HTTP client closed")


# Single FastAPI instance
app = FastAPI(title="KisanSure Market API", version=__version__, lifespan=lifespan)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(agmarknet.router, prefix="/api")
app.include_router(board.router, prefix="/api")


@app.get("/")
async def root():
    return {"ok": True, "service": "KisanSure Market API", "version": app.version}


@app.get("/health")
async def health():
    # Same per-request read as the relay; never echo the key itself
    current = get_settings()
    return {
        "ok": True,
        "agmarknet_key_configured": bool(current.AGMARKNET_API_KEY),
        "resource_id": current.AGMARKNET_RESOURCE_ID,
        "market_mode": current.MARKET_MODE,
    }


def run():
    import uvicorn
    uvicorn.run("kisansure.main:app", host=settings.PROXY_HOST, port=settings.PROXY_PORT)


if __name__ == "__main__":
    run()
