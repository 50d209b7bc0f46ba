"""Runtime settings, read once from the environment."""

import os
from dataclasses import dataclass, field
from functools import lru_cache

DEFAULT_LLM_MODEL = "anthropic/claude-3.5-sonnet"


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class Settings:
    openrouter_api_key: str | None = None
    llm_model: str = DEFAULT_LLM_MODEL
    llm_timeout: float = 30.0
    # Ask the LLM for selectors when a retailer has no static config
    synthesize_configs: bool = False
    fetch_timeout: float = 15.0
    fetch_retries: int = 2
    cors_origins: list[str] = field(default_factory=lambda: ["http://localhost:3000"])

    @property
    def llm_configured(self) -> bool:
        return bool(self.openrouter_api_key)

    @classmethod
    def from_env(cls) -> "Settings":
        origins = os.getenv("CORS_ORIGINS")
        return cls(
            openrouter_api_key=os.getenv("OPENROUTER_API_KEY") or None,
            llm_model=os.getenv("LLM_MODEL", DEFAULT_LLM_MODEL),
            llm_timeout=float(os.getenv("LLM_TIMEOUT", "30")),
            synthesize_configs=_env_bool("SYNTHESIZE_RETAILER_CONFIGS", False),
            fetch_timeout=float(os.getenv("FETCH_TIMEOUT", "15")),
            fetch_retries=int(os.getenv("FETCH_RETRIES", "2")),
            cors_origins=(
                [o.strip() for o in origins.split(",") if o.strip()]
                if origins
                else ["http://localhost:3000"]
            ),
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings.from_env()
