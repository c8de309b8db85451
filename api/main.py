"""
DeFiSeek - REST API

FastAPI application serving the streaming chat endpoint, chat history,
chat deletion and message votes.
"""

from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import Depends, FastAPI, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse, StreamingResponse
from pydantic import ValidationError

from defiseek import __version__
from defiseek.config import get_settings
from defiseek.errors import AuthRequired, MissingCredentialError
from defiseek.llm import find_model
from defiseek.logging import get_api_logger, setup_logging
from defiseek.models import ChatRequest, VoteRequest

from api.auth import get_context, get_current_user
from api.context import AppContext, build_context
from api.messages import (
    filter_valid_messages,
    has_usable_content,
    most_recent_user_message,
    to_langchain_messages,
)
from api.services import ChatService
from api.streaming import STREAM_HEADERS

logger = get_api_logger()


def get_chat_service(context: AppContext = Depends(get_context)) -> ChatService:
    return ChatService(context)


def require_chat_id(id: str | None = Query(default=None)) -> str:
    """The ``id`` query parameter, resolved before authentication so a missing id is a 404."""
    if not id:
        raise HTTPException(status_code=404, detail="Not Found")
    return id


def chat_error_response(details: str) -> JSONResponse:
    return JSONResponse(
        status_code=500,
        content={"error": "An error occurred while processing your request", "details": details},
    )


def create_app(context: AppContext | None = None) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        context: Pre-built application context; tests inject one with fakes.
            When omitted the lifespan builds one from settings.
    """
    settings = context.settings if context else get_settings()

    # =========================================================================
    # Application Lifespan
    # =========================================================================

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        app.state.context = context or build_context(settings)
        setup_logging(app.state.context.settings)
        logger.info("starting_defiseek_api", version=__version__)

        yield

        logger.info("shutting_down_api")
        await app.state.context.aclose()

    app = FastAPI(
        title="DeFiSeek API",
        description="Web3 safety copilot: tool-routed chat over blockchain intelligence",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    # CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.api.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # =========================================================================
    # Health Endpoints
    # =========================================================================

    @app.get("/", tags=["Health"])
    async def root():
        """API root endpoint."""
        return {"name": "DeFiSeek API", "version": __version__}

    @app.get("/health", tags=["Health"])
    async def health_check(context: AppContext = Depends(get_context)):
        """Check API health and wiring."""
        return {
            "status": "healthy",
            "version": __version__,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "agents": context.registry.ids(),
            "tools": context.tool_adapter.names,
        }

    # =========================================================================
    # Chat Endpoints
    # =========================================================================

    @app.post("/api/chat", tags=["Chat"])
    async def chat(
        request: ChatRequest,
        user_id: str = Depends(get_current_user),
        context: AppContext = Depends(get_context),
        service: ChatService = Depends(get_chat_service),
    ):
        """
        Stream an assistant reply for the conversation.

        The response uses the line-oriented data-stream protocol; the first
        part is a ``chatId`` annotation, written before generation starts.
        """
        model = find_model(request.model_id)
        if model is None:
            logger.warning("chat_model_not_found", model_id=request.model_id)
            return PlainTextResponse("Model not found", status_code=404)

        messages = to_langchain_messages(request.messages)
        user_message = most_recent_user_message(messages)
        if user_message is None:
            return PlainTextResponse("No user message found", status_code=400)
        if not has_usable_content(user_message):
            return PlainTextResponse("User message has no content", status_code=400)

        try:
            llm = context.llm_for(model.api_identifier, context.settings.llm.chat_temperature)
        except MissingCredentialError as e:
            logger.error("chat_model_unavailable", model_id=model.id, missing=e.env_var)
            return chat_error_response(e.message)

        try:
            await service.ensure_chat(request.id, user_id, user_message)
            await service.save_user_message(request.id, user_message)
        except AuthRequired:
            raise
        except Exception as e:
            logger.exception("chat_setup_failed", chat_id=request.id, error=str(e))
            return chat_error_response("Failed to save the conversation")

        session = service.start_generation(request.id, llm, filter_valid_messages(messages))
        logger.info("chat_stream_started", chat_id=request.id, model_id=model.id)

        return StreamingResponse(
            session.stream(),
            media_type="text/plain; charset=utf-8",
            headers=STREAM_HEADERS,
        )

    @app.delete("/api/chat", tags=["Chat"])
    async def delete_chat(
        chat_id: str = Depends(require_chat_id),
        user_id: str = Depends(get_current_user),
        service: ChatService = Depends(get_chat_service),
    ):
        """Delete a chat owned by the current user."""
        if not await service.delete_chat(chat_id, user_id):
            return PlainTextResponse("Not Found", status_code=404)
        return PlainTextResponse("Chat deleted", status_code=200)

    @app.get("/api/chat/exists/{chat_id}", tags=["Chat"])
    async def chat_exists(
        chat_id: str,
        user_id: str = Depends(get_current_user),
        service: ChatService = Depends(get_chat_service),
    ):
        """Whether the chat exists and belongs to the current user."""
        return {"exists": await service.chat_exists(chat_id, user_id)}

    @app.get("/api/history", tags=["Chat"])
    async def history(
        user_id: str = Depends(get_current_user),
        service: ChatService = Depends(get_chat_service),
    ):
        """
        The current user's chats, newest first.

        Store failures yield an empty list so the client's sidebar keeps working.
        """
        try:
            chats = await service.history(user_id)
        except Exception as e:
            logger.error("history_failed", user_id=user_id, error=str(e))
            return []
        return [c.model_dump(mode="json", by_alias=True) for c in chats]

    # =========================================================================
    # Vote Endpoints
    # =========================================================================

    @app.get("/api/vote", tags=["Votes"])
    async def get_votes(
        chatId: str | None = Query(default=None),
        user_id: str = Depends(get_current_user),
        service: ChatService = Depends(get_chat_service),
    ):
        """Votes recorded on a chat's messages."""
        if not chatId:
            return PlainTextResponse("chatId is required", status_code=400)
        votes = await service.votes(chatId)
        return [v.model_dump(by_alias=True) for v in votes]

    @app.patch("/api/vote", tags=["Votes"])
    async def vote(
        request: Request,
        user_id: str = Depends(get_current_user),
        service: ChatService = Depends(get_chat_service),
    ):
        """Record an up or down vote on a message."""
        try:
            body = await request.json()
        except ValueError:
            return PlainTextResponse("chatId, messageId and type are required", status_code=400)

        if not isinstance(body, dict) or not all(body.get(k) for k in ("chatId", "messageId", "type")):
            return PlainTextResponse("chatId, messageId and type are required", status_code=400)

        try:
            vote_request = VoteRequest.model_validate(body)
        except ValidationError:
            return PlainTextResponse('type must be "up" or "down"', status_code=400)

        await service.vote(vote_request.chat_id, vote_request.message_id, vote_request.type)
        return PlainTextResponse("Message voted", status_code=200)

    # =========================================================================
    # Error Handlers
    # =========================================================================

    @app.exception_handler(AuthRequired)
    async def auth_required_handler(request: Request, exc: AuthRequired):
        return PlainTextResponse("Unauthorized", status_code=401)

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        logger.error("unhandled_exception", path=request.url.path, error=str(exc))
        return JSONResponse(
            status_code=500,
            content={"detail": "Internal server error"},
        )

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "api.main:app",
        host=settings.api.host,
        port=settings.api.port,
        reload=settings.api.reload,
        workers=1 if settings.api.reload else settings.api.workers,
    )
