from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, Optional

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .config import Settings, load_settings
from .models import ChatRequest, ChatResponse, ErrorResponse, ImageRequest, ImageResponse
from .ratelimit import RateLimiter

BASE_DIR = Path(__file__).resolve().parent

log_level_name = os.getenv("LOG_LEVEL", "INFO").upper()
log_level = getattr(logging, log_level_name, logging.INFO)
if not logging.getLogger().handlers:
    logging.basicConfig(
        level=log_level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

logging.getLogger("friday").setLevel(log_level)
logger = logging.getLogger("friday.proxy")

ENV_PATH = BASE_DIR / ".env"
if ENV_PATH.exists():
    load_dotenv(ENV_PATH, override=True)

RATE_LIMIT_MESSAGE = "Too many requests, please try again later."
DEFAULT_STYLE = "Cinematic"


def _error(status_code: int, message: str, headers: Optional[dict] = None) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message}, headers=headers)


def create_app(settings: Optional[Settings] = None, gemini: Optional[Any] = None) -> FastAPI:
    """Purpose: Build the proxy application with limits, CORS, and API routes.
    Inputs/Outputs: Inputs are optional Settings and a prebuilt Gemini client; returns FastAPI.
    Side Effects / State: Stores settings, client, and rate limiter on app.state.
    Dependencies: Uses GeminiClient (created at startup when not injected) and RateLimiter.
    Failure Modes: Startup raises ValueError when GEMINI_API_KEY is missing.
    If Removed: The private intermediary to the provider does not exist.
    Testing Notes: Inject a fake client and drive routes with TestClient.
    """
    settings = settings or load_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Create the provider client once per process unless one was injected.
        if app.state.gemini is None:
            from .gemini_client import GeminiClient

            app.state.gemini = GeminiClient(settings)
        logger.info("FRIDAY proxy ready port=%s model=%s", settings.port, settings.chat_model)
        yield

    app = FastAPI(title="FRIDAY Proxy", lifespan=lifespan)
    app.state.settings = settings
    app.state.gemini = gemini
    app.state.rate_limiter = RateLimiter(settings.rate_limit_max, settings.rate_limit_window_sec)

    @app.middleware("http")
    async def guard_api(request: Request, call_next):
        """Reject oversized bodies and rate limit /api/ per client address."""
        if not request.url.path.startswith("/api/"):
            return await call_next(request)
        length = request.headers.get("content-length")
        if length and length.isdigit() and int(length) > settings.max_body_bytes:
            return _error(413, "Request body too large")
        client_key = request.client.host if request.client else "unknown"
        decision = request.app.state.rate_limiter.hit(client_key)
        if not decision.allowed:
            logger.warning("rate limited client=%s path=%s", client_key, request.url.path)
            return _error(429, RATE_LIMIT_MESSAGE, headers=decision.headers())
        response = await call_next(request)
        response.headers.update(decision.headers())
        return response

    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.cors_origins),
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(RequestValidationError)
    async def invalid_body(request: Request, exc: RequestValidationError) -> JSONResponse:
        return _error(400, "Invalid request body")

    @app.get("/health")
    async def health(request: Request) -> dict:
        return {"ok": True, "gemini_available": request.app.state.gemini is not None}

    @app.post(
        "/api/chat",
        response_model=ChatResponse,
        responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
    )
    async def chat(request: Request, payload: ChatRequest):
        """Purpose: Answer one chat turn given the client-held history.
        Inputs/Outputs: Input is ChatRequest {history, message}; output is {reply}.
        Side Effects / State: None; each call opens a throwaway remote chat.
        Dependencies: Uses app.state.gemini.generate_reply.
        Failure Modes: 400 without a message; provider errors become a generic 500.
        If Removed: Clients behind the proxy cannot chat.
        Testing Notes: Post without message and with a failing fake client.
        """
        if not payload.message:
            return _error(400, "Message is required")
        try:
            reply = await request.app.state.gemini.generate_reply(payload.history or [], payload.message)
        except Exception:
            logger.exception("Error in /api/chat")
            return _error(500, "Failed to get response from AI")
        return ChatResponse(reply=reply)

    @app.post(
        "/api/image",
        response_model=ImageResponse,
        responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
    )
    async def image(request: Request, payload: ImageRequest):
        """Purpose: Generate one styled image and return it as a data URI.
        Inputs/Outputs: Input is ImageRequest {prompt, style}; output is {imageUrl}.
        Side Effects / State: None.
        Dependencies: Uses app.state.gemini.generate_image.
        Failure Modes: 400 without a prompt; refusals and provider errors become 500
            with the error detail.
        If Removed: Clients behind the proxy cannot generate images.
        Testing Notes: Check the decorated prompt and the refusal message.
        """
        if not payload.prompt:
            return _error(400, "Prompt is required")
        full_prompt = f"{payload.prompt}, {payload.style or DEFAULT_STYLE} style, high detail, masterpiece"
        try:
            result = await request.app.state.gemini.generate_image(full_prompt)
        except Exception as exc:
            logger.exception("Error in /api/image")
            return _error(500, str(exc) or "Failed to generate image")
        return ImageResponse(imageUrl=result.data_uri)

    return app


app = create_app()
