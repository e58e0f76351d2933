"""Runtime settings read from the environment (and a repo-root .env file).

Environment variables:
  OPENAI_API_KEY         bearer key; without it the offline narrator is used
  OPENAI_MODEL           model name (default gpt-4o-mini)
  LLM_PROVIDER_URL       backend base URL (default https://api.openai.com)
  LLM_PROVIDER_FORMAT    "openai" | "koboldcpp"
  LLM_TIMEOUT            HTTP timeout in seconds
  NARRATOR_TIMEOUT       upper bound for one narrator call, in seconds
  NARRATOR_LANGUAGE      language the narrator writes in (default Polish)
  HISTORY_WINDOW         transcript messages included in narrator prompts
  MAX_SAVES              snapshots kept per session
  DATA_DIR               JSON storage directory
  FOREST_ORACLE_OFFLINE  "1" forces the offline narrator
"""

import os
from pathlib import Path

from dotenv import load_dotenv
from pydantic import BaseModel

from forest_oracle.llm import ProviderFormat

ROOT = Path(__file__).parent.parent
DEFAULT_DATA_DIR = ROOT / "data"


class Settings(BaseModel):
    openai_api_key: str = ""
    openai_model: str = "gpt-4o-mini"
    provider_url: str = "https://api.openai.com"
    provider_format: ProviderFormat = "openai"
    llm_timeout: float = 60.0
    narrator_timeout: float = 90.0
    narrator_max_tokens: int = 380
    outline_max_tokens: int = 500
    narrator_language: str = "Polish"
    history_window: int = 12
    max_saves: int = 50
    data_dir: Path = DEFAULT_DATA_DIR
    force_offline: bool = False

    @property
    def offline(self) -> bool:
        """True when no usable backend is configured."""
        if self.force_offline:
            return True
        return self.provider_format == "openai" and not self.openai_api_key


def _env_flag(name: str) -> bool:
    return os.getenv(name, "").strip().lower() in ("1", "true", "yes", "on")


def load_settings(env_file: Path | None = None) -> Settings:
    """Build Settings from the environment, loading .env first if present."""
    load_dotenv(env_file or ROOT / ".env")
    return Settings(
        openai_api_key=os.getenv("OPENAI_API_KEY", ""),
        openai_model=os.getenv("OPENAI_MODEL", "gpt-4o-mini"),
        provider_url=os.getenv("LLM_PROVIDER_URL", "https://api.openai.com"),
        provider_format=os.getenv("LLM_PROVIDER_FORMAT", "openai"),
        llm_timeout=float(os.getenv("LLM_TIMEOUT", "60")),
        narrator_timeout=float(os.getenv("NARRATOR_TIMEOUT", "90")),
        narrator_language=os.getenv("NARRATOR_LANGUAGE", "Polish"),
        history_window=int(os.getenv("HISTORY_WINDOW", "12")),
        max_saves=int(os.getenv("MAX_SAVES", "50")),
        data_dir=Path(os.getenv("DATA_DIR", str(DEFAULT_DATA_DIR))),
        force_offline=_env_flag("FOREST_ORACLE_OFFLINE"),
    )
