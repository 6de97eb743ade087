import os

from dotenv import load_dotenv

load_dotenv()


def _int_env(name: str, default: int) -> int:
    try:
        return int(os.getenv(name, default))
    except (TypeError, ValueError):
        return default


def _float_env(name: str, default: float) -> float:
    try:
        return float(os.getenv(name, default))
    except (TypeError, ValueError):
        return default


class Settings:
    APP_NAME: str = "LinkittyDo"

    def __init__(self):
        self.database_url = os.getenv("DATABASE_URL", "sqlite:///./linkittydo.db")
        self.openrouter_api_key = os.getenv("OPENROUTER_API_KEY", "")
        self.openrouter_model = os.getenv("OPENROUTER_MODEL", "openai/gpt-4o-mini")
        self.openrouter_base_url = os.getenv(
            "OPENROUTER_BASE_URL", "https://openrouter.ai/api/v1/chat/completions")
        # synonym and search calls; a timeout feeds the clue fallback chain
        self.clue_http_timeout = _float_env("CLUE_HTTP_TIMEOUT", 8.0)
        self.synonym_cache_ttl = _int_env("SYNONYM_CACHE_TTL", 3600)
        self.max_generation_attempts = _int_env("MAX_GENERATION_ATTEMPTS", 10)
        origins = os.getenv(
            "CORS_ORIGINS",
            "http://localhost:5173,http://localhost:5174,http://localhost:3000",
        )
        self.cors_origins = [o.strip() for o in origins.split(",") if o.strip()]


settings = Settings()
