import asyncio
import inspect
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request

from config import load_settings
from controllers.card_controller import CardActionController
from controllers.deps import HandlerDeps
from controllers.event_controller import handle_event
from routes.webhook_route import router as webhook_router
from services.audio_transcoder import AudioTranscoder
from services.image_convert import VariationImageConverter
from services.lark.callbacks import LarkCallbacks
from services.lark.messenger import LarkMessenger, build_lark_client
from services.message_cache import MessageCache
from services.openai.balance_service import BalanceService
from services.openai.chat_service import ChatService
from services.openai.client import build_openai_client, chat_model_name
from services.openai.dictation_service import DictationService
from services.openai.image_service import ImageService
from services.openai.vision_service import VisionService
from services.role_catalog import RoleCatalog
from services.session_store import SessionStore
from services.streaming.orchestrator import StreamingOrchestrator

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

settings = load_settings()
logging.basicConfig(level=settings.log_level, format=LOG_FORMAT)
LOGGER = logging.getLogger(__name__)


def build_deps(openai_client, messenger) -> HandlerDeps:
    """Wire the stores and services every policy and card action share."""
    store = SessionStore(ttl_seconds=settings.session_ttl_seconds)
    chat = ChatService(openai_client, chat_model_name(settings), settings.openai_max_tokens)
    return HandlerDeps(
        store=store,
        message_cache=MessageCache(),
        messenger=messenger,
        chat=chat,
        images=ImageService(openai_client, settings.openai_image_model),
        vision=VisionService(openai_client, settings.openai_vision_model, settings.openai_max_tokens),
        dictation=DictationService(openai_client, settings.openai_transcribe_model),
        balance=BalanceService(openai_client),
        orchestrator=StreamingOrchestrator(messenger, chat, store),
        roles=RoleCatalog.from_file(settings.role_list_path),
        transcoder=AudioTranscoder(),
        image_converter=VariationImageConverter(),
        bot_name=settings.bot_name,
        stream_mode=settings.stream_mode,
        azure_on=settings.azure_on,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan manager to initialize:
      - the OpenAI (or Azure OpenAI) async client
      - the Lark client and messenger
      - the session store, dedup cache and the policy chain dependencies
    and attach them to `app.state`.
    """
    try:
        openai_client = build_openai_client(settings)
    except RuntimeError:
        raise
    except Exception as exc:
        raise RuntimeError("Failed to initialize OpenAI Async client") from exc
    app.state.openai_client = openai_client

    if not settings.app_id or not settings.app_secret:
        raise RuntimeError("APP_ID and APP_SECRET environment variables must be set")
    messenger = LarkMessenger(build_lark_client(settings))

    deps = build_deps(openai_client, messenger)
    card_controller = CardActionController(deps)
    app.state.deps = deps
    app.state.card_controller = card_controller

    async def on_event(event):
        await handle_event(event, deps)

    app.state.lark_callbacks = LarkCallbacks(
        settings,
        asyncio.get_running_loop(),
        on_event=on_event,
        on_card=card_controller.handle,
    )
    LOGGER.info(
        "Bot %r ready (stream mode %s, azure %s, model %s)",
        settings.bot_name,
        settings.stream_mode,
        settings.azure_on,
        chat_model_name(settings),
    )

    try:
        yield
    finally:
        # Gracefully close the OpenAI client if it exposes a close/aclose method.
        client = getattr(app.state, "openai_client", None)
        if client is not None:
            aclose = getattr(client, "aclose", None) or getattr(client, "close", None)
            if aclose is not None:
                try:
                    if inspect.iscoroutinefunction(aclose):
                        await aclose()
                    else:
                        result = aclose()
                        if inspect.isawaitable(result):
                            await result
                except Exception as exc:
                    LOGGER.warning("Closing the OpenAI client failed: %s", exc)


def create_app() -> FastAPI:
    """
    Create and configure the FastAPI application instance.
    """
    app = FastAPI(lifespan=lifespan)

    @app.get("/ping")
    async def ping():
        return {"message": "pong"}

    @app.get("/health")
    async def health(request: Request):
        """
        Simple health check that reports which clients are initialized.
        """
        has_openai = getattr(request.app.state, "openai_client", None) is not None
        has_lark = hasattr(request.app.state, "lark_callbacks")
        return {"ok": True, "openai_available": has_openai, "lark_available": has_lark}

    # Register application routers
    app.include_router(webhook_router)

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=settings.http_port)
