from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # OpenRouter (optional; empty key = fallback assistant responses)
    openrouter_api_key: str = ""
    openrouter_base_url: str = "https://openrouter.ai/api/v1"
    default_model: str = "google/gemini-flash-1.5"
    openrouter_model: str = ""
    generation_max_tokens: int = 200
    generation_temperature: float = 0.7
    generation_timeout_seconds: float = 15.0

    # Search surfaces (empty = surface disabled)
    google_api_key: str = ""
    google_search_engine_id: str = ""
    newsapi_key: str = ""
    reddit_client_id: str = ""
    reddit_client_secret: str = ""
    reddit_user_agent: str = "SEOgenix/1.0"
    search_max_results_per_query: int = 10
    search_timeout_seconds: float = 10.0
    search_query_delay_ms: int = 100

    # Citation pipeline
    citation_limit: int = 3
    snippet_max_chars: int = 500
    quota_enforcement_enabled: bool = True

    # Supabase
    supabase_url: str = ""
    supabase_service_role_key: str = ""

    # App
    cors_origins: str = "http://localhost:5173"
    app_log_level: str = "INFO"
    noisy_log_level: str = "WARNING"

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }

    @property
    def cors_origin_list(self) -> list[str]:
        return [o.strip() for o in self.cors_origins.split(",")]


settings = Settings()
