from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

BASE_DIR = Path(__file__).resolve().parent
FEISHU_DOMAIN = "https://open.feishu.cn"


@dataclass(frozen=True)
class Settings:
    """Configuration for the Lark app, the model backend and runtime limits."""

    app_id: str
    app_secret: str
    app_encrypt_key: str
    app_verification_token: str
    bot_name: str
    lark_base_url: str
    openai_api_key: str
    openai_api_url: Optional[str]
    openai_model: str
    openai_vision_model: str
    openai_image_model: str
    openai_transcribe_model: str
    openai_max_tokens: int
    openai_timeout: float
    stream_mode: bool
    azure_on: bool
    azure_api_version: str
    azure_deployment_name: str
    azure_resource_name: str
    azure_openai_token: str
    http_port: int
    session_ttl_seconds: int
    role_list_path: Path
    log_level: str


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _first_api_key(raw: str) -> str:
    # OPENAI_KEY may hold a comma separated list; the first key is used.
    keys = [key.strip() for key in raw.split(",") if key.strip()]
    return keys[0] if keys else ""


def _http_port() -> int:
    for name in ("HTTP_PORT", "PORT"):
        value = os.getenv(name)
        if value:
            return int(value)
    return 9000


def load_settings(env_file: Optional[Path] = None) -> Settings:
    """Load configuration from environment variables and defaults.

    Args:
        env_file: Optional ``.env`` file to load before reading the
            environment. Values already set in the environment win.

    Returns:
        A frozen Settings instance.

    Raises:
        ValueError: If a numeric variable (port, token limit, timeout, TTL)
            cannot be parsed.
    """
    if env_file is not None and env_file.exists():
        load_dotenv(env_file)
    else:
        load_dotenv()

    role_list_path = os.getenv("ROLE_LIST_PATH")
    if role_list_path:
        roles_file = Path(role_list_path)
    else:
        roles_file = (BASE_DIR / "data" / "role_list.json").resolve()

    return Settings(
        app_id=os.getenv("APP_ID", ""),
        app_secret=os.getenv("APP_SECRET", ""),
        app_encrypt_key=os.getenv("APP_ENCRYPT_KEY", ""),
        app_verification_token=os.getenv("APP_VERIFICATION_TOKEN", ""),
        bot_name=os.getenv("BOT_NAME", ""),
        lark_base_url=os.getenv("BASE_URL") or FEISHU_DOMAIN,
        openai_api_key=_first_api_key(os.getenv("OPENAI_KEY", "")),
        openai_api_url=os.getenv("OPENAI_API_URL") or None,
        openai_model=os.getenv("OPENAI_MODEL", "gpt-3.5-turbo"),
        openai_vision_model=os.getenv("OPENAI_VISION_MODEL", "gpt-4o"),
        openai_image_model=os.getenv("OPENAI_IMAGE_MODEL", "dall-e-3"),
        openai_transcribe_model=os.getenv("OPENAI_TRANSCRIBE_MODEL", "whisper-1"),
        openai_max_tokens=int(os.getenv("OPENAI_MAX_TOKENS", "2000")),
        openai_timeout=float(os.getenv("OPENAI_HTTP_CLIENT_TIMEOUT", "550")),
        stream_mode=_env_bool("STREAM_MODE", True),
        azure_on=_env_bool("AZURE_ON", False),
        azure_api_version=os.getenv("AZURE_API_VERSION", "2023-03-15-preview"),
        azure_deployment_name=os.getenv("AZURE_DEPLOYMENT_NAME", ""),
        azure_resource_name=os.getenv("AZURE_RESOURCE_NAME", ""),
        azure_openai_token=os.getenv("AZURE_OPENAI_TOKEN", ""),
        http_port=_http_port(),
        session_ttl_seconds=int(os.getenv("SESSION_TTL_SECONDS", str(12 * 60 * 60))),
        role_list_path=roles_file,
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
    )
