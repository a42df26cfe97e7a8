"""Environment-driven settings for leadflow.

A ``.env`` file in the working directory is read once at import; real
environment variables take precedence over it. Credentials are never given
defaults here: a provider whose key is unset is simply unavailable.

    >>> from leadflow.config import config
    >>> config.SCORING_BATCH_SIZE
    20
"""

import os

from dotenv import load_dotenv

load_dotenv()

_TRUE_VALUES = ("true", "1")


class ConfigError(Exception):
    """A setting a component needs is missing or out of range."""


class Config:
    """Snapshot of the process environment taken at construction.

    Groups:
        runtime     APP_ENV, LOG_LEVEL
        database    DATABASE_URL and pool sizing
        sources     APIFY_*, GOOGLE_MAPS_API_KEY, FIRECRAWL_*, ALLOW_MOCK_LEADS
        stages      ACQUISITION_*, SCORING_*, MIN_MATCH_SCORE, DEFAULT_MATCH_SCORE
        scoring     OPENAI_API_KEY, OPENAI_MODEL

    Build a fresh instance (for example under ``patch.dict(os.environ)``)
    to pick up changed variables; the module-level ``config`` is built once.
    """

    def __init__(self) -> None:
        text = self._get_optional
        number = self._get_int
        seconds = self._get_float

        self.APP_ENV = text("APP_ENV", "dev")
        self.LOG_LEVEL = text("LOG_LEVEL", "INFO")

        self.DATABASE_URL = text("DATABASE_URL")
        self.DATABASE_POOL_SIZE = number("DATABASE_POOL_SIZE", 5)
        self.DATABASE_MAX_OVERFLOW = number("DATABASE_MAX_OVERFLOW", 10)
        self.DATABASE_ECHO = self._get_bool("DATABASE_ECHO")

        self.APIFY_API_TOKEN = text("APIFY_API_TOKEN")
        self.APIFY_MAX_RESULTS = number("APIFY_MAX_RESULTS", 25)
        self.GOOGLE_MAPS_API_KEY = text("GOOGLE_MAPS_API_KEY")
        self.FIRECRAWL_API_KEY = text("FIRECRAWL_API_KEY")
        self.FIRECRAWL_SEARCH_LIMIT = number("FIRECRAWL_SEARCH_LIMIT", 10)
        self.ALLOW_MOCK_LEADS = self._get_bool("ALLOW_MOCK_LEADS", default=True)

        self.ACQUISITION_TIMEOUT_SECONDS = seconds("ACQUISITION_TIMEOUT_SECONDS", 120)
        self.ACQUISITION_CONCURRENCY = number("ACQUISITION_CONCURRENCY", 1)

        self.OPENAI_API_KEY = text("OPENAI_API_KEY")
        self.OPENAI_MODEL = text("OPENAI_MODEL", "gpt-4o-mini")
        self.SCORING_TIMEOUT_SECONDS = seconds("SCORING_TIMEOUT_SECONDS", 60)
        self.SCORING_BATCH_SIZE = number("SCORING_BATCH_SIZE", 20)
        self.SCORING_CONCURRENCY = number("SCORING_CONCURRENCY", 1)
        self.MIN_MATCH_SCORE = number("MIN_MATCH_SCORE", 40)
        self.DEFAULT_MATCH_SCORE = number("DEFAULT_MATCH_SCORE", 50)

    @staticmethod
    def _get_optional(name: str, default: str = "") -> str:
        return os.environ.get(name, default)

    @staticmethod
    def _get_bool(name: str, default: bool = False) -> bool:
        raw = os.environ.get(name)
        if raw is None:
            return default
        return raw.strip().lower() in _TRUE_VALUES

    @staticmethod
    def _get_int(name: str, default: int) -> int:
        raw = os.environ.get(name)
        if raw is None or not raw.strip():
            return default
        try:
            return int(raw)
        except ValueError as exc:
            raise ConfigError(f"{name} must be an integer, got {raw!r}") from exc

    @staticmethod
    def _get_float(name: str, default: float) -> float:
        raw = os.environ.get(name)
        if raw is None or not raw.strip():
            return float(default)
        try:
            return float(raw)
        except ValueError as exc:
            raise ConfigError(f"{name} must be a number, got {raw!r}") from exc

    def validate_for_database(self) -> None:
        if not self.DATABASE_URL:
            raise ConfigError("DATABASE_URL is required to open the campaign store")

    def validate_for_scoring(self) -> None:
        """Check the model key and the score tunables before any run scores.

        Raises:
            ConfigError: naming the first offending variable.
        """
        if not self.OPENAI_API_KEY:
            raise ConfigError("OPENAI_API_KEY is required to score leads")
        if self.SCORING_BATCH_SIZE < 1:
            raise ConfigError("SCORING_BATCH_SIZE must be 1 or more")
        for name in ("MIN_MATCH_SCORE", "DEFAULT_MATCH_SCORE"):
            if not 0 <= getattr(self, name) <= 100:
                raise ConfigError(f"{name} must lie within 0..100")

    def has_lead_source(self) -> bool:
        """True when at least one real provider credential is present."""
        return any((self.APIFY_API_TOKEN, self.GOOGLE_MAPS_API_KEY, self.FIRECRAWL_API_KEY))

    def get_database_connection_args(self) -> dict:
        """Pool keyword arguments for ``create_async_engine`` on server databases."""
        return dict(
            pool_size=self.DATABASE_POOL_SIZE,
            max_overflow=self.DATABASE_MAX_OVERFLOW,
            pool_pre_ping=True,
        )

    def is_development(self) -> bool:
        return self.APP_ENV.lower() in ("dev", "development", "local")


config = Config()
