from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    database_url: str = "sqlite:///./directory.sqlite"
    api_prefix: str = "/api/v1"
    cors_origins: list[str] = ["http://127.0.0.1:5173", "http://localhost:5173"]

    # Query normalization
    max_query_length: int = 200
    default_page_size: int = 20
    max_page_size: int = 100

    # Matching and ranking
    fuzzy_threshold: float = 0.3
    min_fuzzy_token_length: int = 3
    min_partial_prefix: int = 3
    partial_score: float = 0.5
    exact_weight: float = 1.0
    fuzzy_weight: float = 0.6
    partial_weight: float = 0.3
    # Sum of weighted field scores that maps to rank 1.0
    normalization_factor: float = 2.0

    # Suggestions and autocomplete
    low_results_threshold: int = 3
    suggestion_floor: float = 0.2
    suggestion_limit: int = 5
    autocomplete_default_limit: int = 5
    autocomplete_max_limit: int = 20

    # Collaborators
    redis_url: str | None = None
    cache_ttl_seconds: int = 300  # 5 minutes
    record_source_timeout_seconds: float = 5.0
    record_source_retry_backoff_seconds: float = 0.2
    token_ttl_seconds: int = 3600
    slow_search_ms: int = 500

    model_config = {"env_prefix": "DIRSEARCH_"}


settings = Settings()
