import asyncio
import contextlib
import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from kisanvaani.config import settings
from kisanvaani.di import get_cache, get_chat_manager
from kisanvaani.errors import ChatError
from kisanvaani.http import init_http, close_http
from kisanvaani.routers import conversations, data, profile, realtime
from kisanvaani.utils.cache import run_sweeper
from kisanvaani.core.services.chat import run_session_sweeper

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger("kisanvaani")

# Single FastAPI instance
app = FastAPI(title="KisanVaani", version="1.0.0")

_sweepers: list = []

# Single startup event
@app.on_event("startup")
async def startup_event():
    """Initialize HTTP client and the background sweepers on startup."""
    await init_http()
    _sweepers.append(asyncio.create_task(run_sweeper(get_cache(), settings.CACHE_SWEEP_SEC)))
    _sweepers.append(asyncio.create_task(
        run_session_sweeper(get_chat_manager(), settings.SESSION_IDLE_SEC, settings.SESSION_SWEEP_SEC)))
    logger.info("HTTP client initialized")
    logger.info("🌾 Using models (in order): %s", ", ".join(settings.OPENAI_MODELS))

# Single shutdown event
@app.on_event("shutdown")
async def shutdown_event():
    """Stop the sweepers and close HTTP client on shutdown."""
    while _sweepers:
        task = _sweepers.pop()
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task
    await close_http()
    logger.info("HTTP client closed")

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=[settings.FRONTEND_URL],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

@app.exception_handler(ChatError)
async def chat_error_handler(request: Request, exc: ChatError):
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

# API endpoints
@app.get("/")
async def root():
    return {"ok": True, "service": "KisanVaani", "version": app.version}

@app.get("/health")
async def health():
    return {
        "ok": True,
        "model": get_chat_manager().current_model,
        "models": settings.OPENAI_MODELS,
        "cache_entries": len(get_cache()),
        "cache_ttl_sec": get_cache().ttl,
    }

app.include_router(conversations.router)
app.include_router(data.router)
app.include_router(profile.router)
app.include_router(realtime.router)

if __name__ == "__main__":
    import uvicorn
    uvicorn.run("kisanvaani.main:app", host="0.0.0.0", port=8000, reload=False)
