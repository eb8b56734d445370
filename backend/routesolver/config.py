from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Price oracle
    price_oracle: str = "skyscanner"        # "skyscanner" | "fixture"
    skyscanner_endpoint: str = "https://partners.api.skyscanner.net/apiservices/v3/flights/indicative/search"
    skyscanner_api_key: str = ""
    skyscanner_market: str = "US"
    skyscanner_locale: str = "en-US"
    currency: str = "USD"
    rate_limit_backoff_ms: int = 250
    request_timeout_seconds: float = 30
    fixture_prices_path: str = ""           # JSON usato con PRICE_ORACLE=fixture

    # Redis (vuoto = nessuna persistenza dei prezzi)
    redis_url: str = ""
    cache_ttl_hours: int = 6

    # Solver
    search_horizon_days: int = 30           # permanenza massima se max_days non è dato
    max_concurrent_pricing: int = 1         # 1 = pricing sequenziale
    stats_enabled: bool = True

    # App
    app_env: str = "development"
    log_level: str = "INFO"

    class Config:
        env_file = ".env"


# Istanza globale usata in tutto il progetto
settings = Settings()
