from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_prefix="PRICEFEED_", extra="ignore")
    # Edge gateway the client-side pipeline talks to (this service when run locally)
    gateway_url: str = "http://localhost:8201"
    host: str = "0.0.0.0"
    port: int = 8201
    log_level: str = "INFO"
    log_json: bool = False
    # Local result cache: "memory", "file" or "redis"
    cache_backend: str = "memory"
    cache_dir: str = "./data/cache"
    redis_url: str = "redis://localhost:6379"
    quote_cache_ttl_seconds: float = 5 * 60
    edge_cache_ttl_seconds: int = 5 * 60
    # Dual-window rate limit per client IP
    rate_limit_short_window: float = 5 * 60
    rate_limit_short_limit: int = 75
    rate_limit_long_window: float = 24 * 3600
    rate_limit_long_limit: int = 1000
    max_rollbacks: int = 3
    tase_api_key: str = ""
    upstream_requests_per_minute: int = 120
    request_timeout_seconds: float = 30

settings = Settings()
