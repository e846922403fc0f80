import hmac
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, FastAPI, Header, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from starlette.datastructures import Headers
from starlette.exceptions import HTTPException as StarletteHTTPException

from config import config
from database import ConversationStore, InvalidInput, NotFound, ProfileStore, StoreError, ThemeStore
from logger import setup_logger
from schemas import (
    HealthResponse,
    MessageResponse,
    MessagesResponse,
    OpenDmThread,
    Profile,
    RoomsResponse,
    SaveTheme,
    SendMessage,
    ThemeResponse,
    ThreadResponse,
    ThreadsResponse,
    VerificationResponse,
)

logger = logging.getLogger(__name__)

SERVICE_NAME = "staticplay-chat-server"
ANONYMOUS = "anonymous"
VERIFICATION_PROVIDER = "sumsub-mock"


# Dependencies

def current_user(request: Request, x_staticplay_user_id: Optional[str] = Header(None)) -> str:
    # Self-reported by the client; not proof of identity
    user_id = x_staticplay_user_id or ANONYMOUS
    request.app.state.profiles.get_profile(user_id)
    return user_id


def conversations(request: Request) -> ConversationStore:
    return request.app.state.conversations


def themes(request: Request) -> ThemeStore:
    return request.app.state.themes


def profiles(request: Request) -> ProfileStore:
    return request.app.state.profiles


router = APIRouter(prefix="/v1")


@router.get("/health", response_model=HealthResponse)
def health():
    return HealthResponse(ok=True, service=SERVICE_NAME, timestamp=datetime.now(timezone.utc))


# Profile

@router.get("/me", response_model=Profile)
def me(user_id: str = Depends(current_user), store: ProfileStore = Depends(profiles)):
    return store.get_profile(user_id)


@router.post("/verify18/mock-complete", response_model=VerificationResponse)
def complete_mock_verification(
    user_id: str = Depends(current_user),
    store: ProfileStore = Depends(profiles),
):
    profile = store.mark_verified(user_id)
    return VerificationResponse(is18_verified=profile.is18_verified, provider=VERIFICATION_PROVIDER)


# Rooms

@router.get("/rooms", response_model=RoomsResponse)
def list_rooms(store: ConversationStore = Depends(conversations)):
    return RoomsResponse(rooms=store.list_rooms())


@router.get("/rooms/{room_id}/messages", response_model=MessagesResponse)
def list_room_messages(room_id: str, store: ConversationStore = Depends(conversations)):
    return MessagesResponse(messages=store.get_room_messages(room_id))


@router.post("/rooms/{room_id}/messages", response_model=MessageResponse, status_code=201)
def send_room_message(room_id: str, payload: SendMessage, store: ConversationStore = Depends(conversations)):
    message = store.append_room_message(room_id, payload.sender, payload.text, payload.image_data_url)
    return MessageResponse(message=message)


# Theme

@router.get("/theme", response_model=ThemeResponse)
def get_theme(user_id: str = Depends(current_user), store: ThemeStore = Depends(themes)):
    return ThemeResponse(theme=store.get_theme(user_id))


@router.post("/theme", response_model=ThemeResponse)
def save_theme(payload: SaveTheme, user_id: str = Depends(current_user), store: ThemeStore = Depends(themes)):
    theme = store.save_theme(user_id, payload.message_box_color, payload.message_text_color)
    return ThemeResponse(theme=theme)


# DMs

@router.post("/dms/threads/open", response_model=ThreadResponse)
def open_dm_thread(payload: OpenDmThread, store: ConversationStore = Depends(conversations)):
    return ThreadResponse(thread=store.open_dm_thread(payload.self_alias, payload.other_alias))


@router.get("/dms/threads", response_model=ThreadsResponse)
def list_dm_threads(self_alias: str = Query("", alias="selfAlias"), store: ConversationStore = Depends(conversations)):
    return ThreadsResponse(threads=store.list_dm_threads(self_alias))


@router.get("/dms/threads/{thread_id}/messages", response_model=MessagesResponse)
def list_dm_messages(thread_id: str, store: ConversationStore = Depends(conversations)):
    return MessagesResponse(messages=store.get_dm_messages(thread_id))


@router.post("/dms/threads/{thread_id}/messages", response_model=MessageResponse, status_code=201)
def send_dm_message(thread_id: str, payload: SendMessage, store: ConversationStore = Depends(conversations)):
    message = store.append_dm_message(thread_id, payload.sender, payload.text, payload.image_data_url)
    return MessageResponse(message=message)


# Error translation

STORE_ERROR_STATUS = {
    InvalidInput: 400,
    NotFound: 404,
}


def error(status_code: int, detail: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": detail})


async def handle_store_error(request: Request, exc: StoreError):
    return error(STORE_ERROR_STATUS.get(type(exc), 400), str(exc))


async def handle_validation_error(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    if errors:
        first = errors[0]
        field = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        detail = f"{field}: {first.get('msg')}" if field else first.get("msg", "Invalid request")
    else:
        detail = "Invalid request"
    return error(400, detail)


async def handle_http_error(request: Request, exc: StarletteHTTPException):
    if exc.status_code == 404:
        return error(404, "Route not found")
    return error(exc.status_code, str(exc.detail))


class BodySizeLimit:
    """ASGI middleware buffering request bodies and refusing those over ``max_bytes``.

    Streamed bytes are counted, so chunked requests without a Content-Length
    are capped as well. The buffered body is replayed to the app unchanged.
    """

    def __init__(self, app, max_bytes: int):
        self.app = app
        self.max_bytes = max_bytes

    async def __call__(self, scope, receive, send):
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        length = Headers(scope=scope).get("content-length")
        if length is not None:
            try:
                declared = int(length)
            except ValueError:
                await error(400, "Invalid content-length")(scope, receive, send)
                return
            if declared > self.max_bytes:
                await self._reject(scope, receive, send)
                return

        chunks = []
        size = 0
        more_body = True
        while more_body:
            message = await receive()
            if message["type"] == "http.disconnect":
                return
            chunk = message.get("body", b"")
            size += len(chunk)
            if size > self.max_bytes:
                await self._reject(scope, receive, send)
                return
            chunks.append(chunk)
            more_body = message.get("more_body", False)

        body = b"".join(chunks)
        replayed = False

        async def replay():
            nonlocal replayed
            if not replayed:
                replayed = True
                return {"type": "http.request", "body": body, "more_body": False}
            return await receive()

        await self.app(scope, replay, send)

    async def _reject(self, scope, receive, send):
        logger.warning("Rejected %s %s: body over %d bytes", scope["method"], scope["path"], self.max_bytes)
        await error(413, "Body too large")(scope, receive, send)


def create_app(
    conversation_store: Optional[ConversationStore] = None,
    theme_store: Optional[ThemeStore] = None,
    profile_store: Optional[ProfileStore] = None,
    settings=config,
) -> FastAPI:
    """Build the HTTP app around a set of stores (fresh ones by default)."""
    setup_logger(settings.LOG_LEVEL)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(
            "%s ready with %d rooms",
            SERVICE_NAME,
            len(app.state.conversations.list_rooms()),
        )
        yield
        logger.info("%s shutting down", SERVICE_NAME)

    app = FastAPI(title="StaticPlay Chat API", version="0.1.0", lifespan=lifespan)
    app.state.settings = settings
    app.state.conversations = conversation_store or ConversationStore(settings.ROOMS)
    app.state.themes = theme_store or ThemeStore()
    app.state.profiles = profile_store or ProfileStore()

    # Added innermost first: CORS wraps the gate, the gate wraps the body cap
    app.add_middleware(BodySizeLimit, max_bytes=settings.MAX_BODY_BYTES)

    @app.middleware("http")
    async def gate(request: Request, call_next):
        # Plain OPTIONS (no CORS preflight headers) is answered before auth
        if request.method == "OPTIONS":
            return Response(status_code=204)
        if request.url.path.startswith("/v1"):
            presented = request.headers.get("x-staticplay-app-key", "")
            if not hmac.compare_digest(presented.encode(), settings.APP_KEY.encode()):
                logger.warning("Rejected %s %s: bad app key", request.method, request.url.path)
                return error(401, "Unauthorized app key")
        return await call_next(request)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(StoreError, handle_store_error)
    app.add_exception_handler(RequestValidationError, handle_validation_error)
    app.add_exception_handler(StarletteHTTPException, handle_http_error)

    app.include_router(router)
    return app


app = create_app()

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=config.HOST, port=config.PORT)
