from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # OpenRouter
    openrouter_api_key: str = ""
    openrouter_base_url: str = "https://openrouter.ai/api/v1"
    default_model: str = "openai/gpt-4o-mini"
    openrouter_model: str = ""

    # Generation
    generation_max_tokens: int = 1024
    generation_prompt_char_limit: int = 18000
    generation_session_mode: str = "per_prompt"  # per_prompt | per_category

    # Search provider
    search_provider: str = "google"  # google | tavily
    google_api_key: str = ""
    google_search_engine_id: str = ""
    tavily_api_key: str = ""
    search_fallback_to_tavily: bool = False
    search_results_per_category: int = 5
    search_max_parallel_requests: int = 4

    # Program discovery
    discovery_initial_results: int = 15
    discovery_max_results: int = 10

    # External content
    content_protocol: str = "links"  # links | snippets
    external_content_url: str = "http://localhost:8000/api/external-data"
    snippet_fetch_chars: int = 4000
    snippet_fetch_max_parallel: int = 4
    page_text_char_limit: int = 15000

    # Timeouts
    remote_call_timeout_seconds: float = 30.0

    # Result store
    result_store_backend: str = "json"  # json | memory
    result_store_dir: str = ".cache/results"

    # App
    cors_origins: str = "http://localhost:3000"
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
