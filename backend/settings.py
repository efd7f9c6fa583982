import os

# Basic settings helper to read environment configuration.


def _as_bool(val: str | None, default: bool = False) -> bool:
    if val is None:
        return default
    return val.lower() in ("1", "true", "yes", "on")


def _as_int(val: str | None, default: int) -> int:
    if val is None or not val.strip():
        return default
    return int(val)


def _as_float(val: str | None, default: float) -> float:
    if val is None or not val.strip():
        return default
    return float(val)


class Settings:
    def __init__(self) -> None:
        # "database" reads the local SQLAlchemy store, "rest" talks to a PostgREST endpoint
        self.PLACES_BACKEND: str = os.getenv("PLACES_BACKEND", "database").lower()
        self.PLACES_DATABASE_URL: str | None = os.getenv("PLACES_DATABASE_URL")
        self.PLACES_REST_URL: str | None = os.getenv("PLACES_REST_URL")
        self.PLACES_REST_KEY: str | None = os.getenv("PLACES_REST_KEY")
        self.PLACES_REST_TIMEOUT: float = _as_float(os.getenv("PLACES_REST_TIMEOUT"), 10.0)
        self.PLACES_PREFERENCES_PATH: str | None = os.getenv("PLACES_PREFERENCES_PATH")
        self.PLACES_LOG_SQL: bool = _as_bool(os.getenv("PLACES_LOG_SQL"), False)

        self.VIEWPORT_DEBOUNCE_MS: int = _as_int(os.getenv("VIEWPORT_DEBOUNCE_MS"), 700)
        self.MIN_LOADING_MS: int = _as_int(os.getenv("MIN_LOADING_MS"), 200)
        self.REGION_MAX_RESULTS: int = _as_int(os.getenv("REGION_MAX_RESULTS"), 300)
        self.REGION_MARGIN: float = _as_float(os.getenv("REGION_MARGIN"), 1.2)


settings = Settings()
