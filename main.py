import logging
import os
from contextlib import asynccontextmanager
from pathlib import Path

import httpx
from fastapi import FastAPI, Request, HTTPException
from fastapi.responses import FileResponse
from fastapi.staticfiles import StaticFiles
from openai import AsyncOpenAI

from routes.session_route import router as session_router
from routes.viewer_route import router as viewer_router
from routes.viewer_ws import router as viewer_ws_router
from services.tutor.backend import HttpTutorBackend, OpenAITutorBackend
from services.tutor.session_store import SessionStore
from services.viewer.viewer_urls import DEFAULT_PDFJS_VIEWER
from utils.database_init import AsyncDatabaseInitializer

BASE_DIR = Path(__file__).resolve().parent
PUBLIC_DIR = BASE_DIR / "public"

from dotenv import load_dotenv

load_dotenv()  # Load environment variables from .env file if present

logging.basicConfig(level=os.getenv("LOG_LEVEL", "INFO").upper())
LOGGER = logging.getLogger(__name__)


def build_tutor_backend(http_client: httpx.AsyncClient):
    """
    Build the tutor backend selected by TUTOR_BACKEND:
      - "http" (default): POST to TUTOR_BACKEND_URL with TUTOR_BACKEND_KEY as bearer token
      - "openai": answer directly with the OpenAI Responses API (needs OPENAI_API_KEY)
    """
    kind = os.getenv("TUTOR_BACKEND", "http").strip().lower()

    if kind == "openai":
        if not os.getenv("OPENAI_API_KEY"):
            raise RuntimeError("OPENAI_API_KEY environment variable is not set")
        try:
            openai_client = AsyncOpenAI()
        except Exception as exc:
            raise RuntimeError("Failed to initialize OpenAI Async client") from exc
        return OpenAITutorBackend(openai_client, model=os.getenv("OPENAI_MODEL", "gpt-5"))

    if kind == "http":
        endpoint = os.getenv("TUTOR_BACKEND_URL")
        if not endpoint:
            raise RuntimeError("TUTOR_BACKEND_URL environment variable is not set")
        return HttpTutorBackend(http_client, endpoint, api_key=os.getenv("TUTOR_BACKEND_KEY"))

    raise RuntimeError(f"Unsupported TUTOR_BACKEND {kind!r}; expected 'http' or 'openai'")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan manager to initialize:
      - the SQLite database (at DATABASE_DIR/tutor.db, kept across restarts)
      - the shared HTTP client used for images, documents, and the tutor endpoint
      - the tutor backend and the in-memory session store
    and attach them to `app.state`.
    """
    db_initializer = AsyncDatabaseInitializer()
    await db_initializer.ensure_database()
    app.state.db_initializer = db_initializer

    http_client = httpx.AsyncClient(timeout=30.0, follow_redirects=True)
    app.state.http_client = http_client

    try:
        app.state.tutor_backend = build_tutor_backend(http_client)
        app.state.tutor_provider = os.getenv("TUTOR_PROVIDER", "gemini")
        app.state.viewer_settings = {
            "attempt_timeout": float(os.getenv("VIEWER_ATTEMPT_TIMEOUT", "10")),
            "max_attempts": int(os.getenv("VIEWER_MAX_ATTEMPTS", "4")),
            "pdfjs_viewer": os.getenv("PDF_VIEWER_BASE_URL", DEFAULT_PDFJS_VIEWER),
        }
        app.state.session_store = SessionStore()
        yield
    finally:
        store = getattr(app.state, "session_store", None)
        if store is not None:
            store.close_all()

        backend = getattr(app.state, "tutor_backend", None)
        client = getattr(backend, "client", None)
        if client is not None:
            try:
                await client.close()
            except Exception as exc:
                # Ignore shutdown errors to avoid masking more important issues.
                LOGGER.warning("Error closing OpenAI client: %s", exc)

        await http_client.aclose()


def create_app() -> FastAPI:
    """
    Create and configure the FastAPI application instance.
    """
    app = FastAPI(lifespan=lifespan)

    # Serve static assets from the public directory, if it exists.
    if PUBLIC_DIR.exists():
        app.mount("/public", StaticFiles(directory=PUBLIC_DIR), name="public")

    @app.get("/", include_in_schema=False)
    async def serve_index():
        """
        Serve the frontend index page from the public directory.
        """
        index_path = PUBLIC_DIR / "index.html"
        if not index_path.exists():
            raise HTTPException(status_code=404, detail="Frontend not found")
        return FileResponse(index_path)

    @app.get("/health")
    async def health(request: Request):
        """
        Simple health check that reports shared resources and open sessions.
        """
        has_db = hasattr(request.app.state, "db_initializer")
        backend = getattr(request.app.state, "tutor_backend", None)
        store = getattr(request.app.state, "session_store", None)
        return {
            "ok": True,
            "db_initialized": has_db,
            "tutor_backend": type(backend).__name__ if backend is not None else None,
            "open_sessions": len(store.session_ids()) if store is not None else 0,
        }

    app.include_router(session_router)
    app.include_router(viewer_router)
    app.include_router(viewer_ws_router)

    return app


app = create_app()
