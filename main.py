"""
FastAPI app wiring:
- Loads settings from the environment and exits when the API key is missing
- Sets up the SQLite engine and table creation on startup
- Provides a per-request store and a ChatService via Depends
- Serves the browser UI, uploaded files and generated images
"""

"""
How requests, DB sessions and chat sessions relate:
    - Each HTTP request gets a fresh SQLModel Session from get_db_session; FastAPI closes it after the response.
    - The chat session is the opaque sessionId string the browser generates. It is created in the users
      table on first use (message, upload or image request) and keys every other row.
    - Nothing but the database survives a restart; the model agent and the image chain are stateless
      and shared by all requests.
"""
# stdlib imports
import logging
import os
import uuid
from contextlib import asynccontextmanager
from functools import lru_cache

# third-party imports
from fastapi import Depends, FastAPI, File, Form, HTTPException, Request, UploadFile
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse, JSONResponse
from fastapi.staticfiles import StaticFiles
from sqlmodel import Session
from starlette.exceptions import HTTPException as StarletteHTTPException
import uvicorn

# local imports
from agents import ChatAgent, ModelError
from api.image_chain import ImageFallbackChain, build_default_chain
from constants import DEFAULT_SESSION_ID, GENERATED_URL_PREFIX, UPLOADS_URL_PREFIX
from datamanager.data_manager_interface import StorageError
from datamanager.sqlite_data_manager import SQLiteDataManager
from db_utils import create_db_and_tables, get_db_session
from logging_utils import configure_logging
from prompts import GENERIC_ERROR_MESSAGE
from schemas import ChatRequest, ClearRequest
from services import ChatService, UploadRejected
from settings import get_settings, require_api_key


configure_logging()
logger = logging.getLogger(__name__)


settings = get_settings()

PUBLIC_DIR = os.path.join(os.path.dirname(os.path.abspath(__file__)), "public")

# StaticFiles needs the directories to exist at mount time
os.makedirs(settings.uploads_dir, exist_ok=True)
os.makedirs(settings.generated_images_dir, exist_ok=True)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Startup: fail fast without an API key, then create tables (idempotent).
    """
    require_api_key(settings)
    create_db_and_tables()
    logger.info(
        f"Chat server ready: provider={settings.model_provider} model={settings.text_model} "
        f"database={settings.database_url}"
    )
    yield
    logger.info("Shutting down chat server")


app = FastAPI(title="Gemini Chat", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.frontend_origins,
    allow_credentials="*" not in settings.frontend_origins,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Uploaded files, generated images and the browser UI are served from local disk
app.mount(UPLOADS_URL_PREFIX, StaticFiles(directory=settings.uploads_dir), name="uploads")
app.mount(GENERATED_URL_PREFIX, StaticFiles(directory=settings.generated_images_dir), name="generated")
app.mount("/static", StaticFiles(directory=PUBLIC_DIR), name="static")


@app.middleware("http")
async def log_requests(request: Request, call_next):
    request_id = request.headers.get("X-Request-Id") or uuid.uuid4().hex[:12]
    logger.info(f"-> {request.method} {request.url.path} id={request_id}")
    response = await call_next(request)
    logger.info(f"<- {request.method} {request.url.path} id={request_id} status={response.status_code}")
    response.headers["X-Request-Id"] = request_id
    return response


# Error rendering: every error body is a flat {"error": ...} object
@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse({"error": exc.detail}, status_code=exc.status_code)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        {"error": "Invalid request", "details": jsonable_encoder(exc.errors())},
        status_code=400,
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    return _server_error(GENERIC_ERROR_MESSAGE, str(exc))


# Dependency and Service functions
def get_store(db_session: Session = Depends(get_db_session)) -> SQLiteDataManager:
    """Wrap the per-request database session in the data manager."""
    return SQLiteDataManager(db_session)


@lru_cache(maxsize=1)
def get_agent() -> ChatAgent:
    """Model gateway, built once per process from settings."""
    return ChatAgent(
        model_provider=settings.model_provider,
        gemini_api_key=settings.gemini_api_key,
        openai_api_key=settings.openai_api_key,
        text_model=settings.text_model,
    )


@lru_cache(maxsize=1)
def get_image_chain() -> ImageFallbackChain:
    return build_default_chain(settings)


def get_service(
    store: SQLiteDataManager = Depends(get_store),
    agent: ChatAgent = Depends(get_agent),
    image_chain: ImageFallbackChain = Depends(get_image_chain),
) -> ChatService:
    return ChatService(store=store, agent=agent, settings=settings, image_chain=image_chain)


def _server_error(message: str, details: str | None = None) -> JSONResponse:
    body = {"error": message}
    if details:
        body["details"] = details
    return JSONResponse(body, status_code=500)


@app.get("/")
async def index():
    return FileResponse(os.path.join(PUBLIC_DIR, "index.html"))


@app.get("/health")
async def health():
    return {"status": "ok", "provider": settings.model_provider}


@app.post("/api/chat")
async def chat(payload: ChatRequest, service: ChatService = Depends(get_service)):
    """
    Answer a chat message, optionally about an uploaded file or as an image request.

    Body:
        message: Required user text.
        sessionId: Chat session (default "default").
        fileUrl: URL returned by /api/upload for a file in this session.
        generateImage: Treat the message as an image prompt.

    Returns:
        {"response": str, "sessionId": str} plus "imageUrl" and "imageSource" for image requests.
    """
    message = (payload.message or "").strip()
    if not message:
        raise HTTPException(status_code=400, detail="Message is required")

    session_id = payload.sessionId.strip() or DEFAULT_SESSION_ID

    try:
        if payload.generateImage:
            return await service.generate_image(session_id, message)
        return await service.send_message(session_id, message, file_url=payload.fileUrl)

    except LookupError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ModelError as e:
        logger.error(f"Chat failed for session {session_id}: {str(e)}")
        return _server_error(GENERIC_ERROR_MESSAGE, str(e))
    except StorageError as e:
        return _server_error(str(e))
    except Exception as e:
        logger.exception(f"Unexpected chat error for session {session_id}")
        return _server_error(GENERIC_ERROR_MESSAGE, str(e))


@app.post("/api/upload")
async def upload_file(
    file: UploadFile | None = File(default=None),
    session_id: str = Form(default=DEFAULT_SESSION_ID, alias="sessionId"),
    service: ChatService = Depends(get_service),
):
    """
    Store an uploaded file (multipart field "file") for the session.

    Returns:
        {"success": true, "file": {"id", "filename", "originalName", "url", "size", "mimeType"}}
    """
    if file is None or not file.filename:
        raise HTTPException(status_code=400, detail="No file uploaded")

    try:
        # one byte over the limit is enough to reject the file
        data = await file.read(settings.max_upload_bytes + 1)
    except Exception as e:
        raise HTTPException(status_code=400, detail=f"File processing failed {str(e)}.")

    try:
        stored = await service.upload_file(session_id or DEFAULT_SESSION_ID, file.filename, file.content_type, data)
        return {"success": True, "file": stored}

    except UploadRejected as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except (StorageError, RuntimeError) as e:
        logger.error(f"Upload failed for session {session_id}: {str(e)}")
        return _server_error(str(e))


@app.post("/api/clear")
async def clear_conversation(payload: ClearRequest, service: ChatService = Depends(get_service)):
    session_id = payload.sessionId.strip() or DEFAULT_SESSION_ID
    try:
        deleted = await service.clear_session(session_id)
    except StorageError as e:
        return _server_error(str(e))

    return {"message": "Conversation cleared", "deletedRows": deleted}


@app.get("/api/history/{session_id}")
async def get_history(session_id: str, limit: int = 50, service: ChatService = Depends(get_service)):
    """
    Latest messages of a session, oldest first.

    Args:
        session_id: Session ID from URL path.
        limit: Messages to return (default: 50, max: 200). Query parameter: ?limit=50
    """
    if limit > 200:
        limit = 200
    if limit < 1:
        limit = 50

    try:
        return await service.get_history(session_id, limit)
    except StorageError as e:
        return _server_error(str(e))


@app.get("/api/stats")
async def get_stats(service: ChatService = Depends(get_service)):
    try:
        return await service.get_stats()
    except StorageError as e:
        return _server_error(str(e))


@app.get("/api/export/{session_id}")
async def export_session(session_id: str, service: ChatService = Depends(get_service)):
    """
    Download a session's turns, uploads and generated images as JSON.
    """
    try:
        data = await service.export_session(session_id)
    except StorageError as e:
        return _server_error(str(e))

    safe_name = "".join(c for c in session_id if c.isalnum() or c in "-_")[:8] or "session"
    return JSONResponse(
        content=data,
        headers={"Content-Disposition": f'attachment; filename="chat-export-{safe_name}.json"'},
    )


if __name__ == "__main__":
    uvicorn.run(
        "main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=True,  # Only for development
        log_level="info"
    )
