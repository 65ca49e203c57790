from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # OpenRouter (required for any agent call, checked when the agent runs)
    openrouter_api_key: str = ""
    openrouter_base_url: str = "https://openrouter.ai/api/v1"
    default_model: str = "openai/gpt-4o"
    openrouter_model: str = ""
    agent_max_tokens: int = 4096
    agent_max_tool_calls: int = 8
    agent_session_timeout_seconds: float = 180.0
    # How long a started stream waits for its client to subscribe
    stream_subscribe_timeout_seconds: float = 30.0

    # Search provider (Brave is optional; without a key DuckDuckGo is scraped)
    brave_api_key: str = ""
    search_default_results: int = 5
    search_max_results: int = 10

    # Fetching / extraction
    fetch_connect_timeout: float = 10.0
    fetch_read_timeout: float = 15.0
    fetch_max_redirects: int = 5
    fetch_user_agent: str = "Mozilla/5.0 (compatible; ResearchStreamBot/1.0)"
    extractor_max_chars: int = 8000

    # App
    cors_origins: str = "http://localhost:3000"
    app_log_level: str = "INFO"
    noisy_log_level: str = "WARNING"
    log_dir: str = "logs"

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }

    @property
    def cors_origin_list(self) -> list[str]:
        return [o.strip() for o in self.cors_origins.split(",")]


settings = Settings()
