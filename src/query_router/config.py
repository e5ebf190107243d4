from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    OPENAI_API_KEY: str | None = None
    OPENAI_BASE_URL: str | None = None
    OPENAI_ORG: str | None = None

    LLM_MODEL: str = "gpt-4o-mini"
    # Deterministic generation controls
    TEMPERATURE: float = 0.0
    MAX_OUTPUT_TOKENS: int = 300

    # Per-call timeouts for guarded dependencies
    LLM_TIMEOUT_S: float = 30.0
    DB_TIMEOUT_S: float = 15.0

    # Circuit breakers: failures within the window open the circuit;
    # the same window is used as the cooldown before a half-open trial
    LLM_BREAKER_THRESHOLD: int = 5
    LLM_BREAKER_WINDOW_S: float = 60.0
    DB_BREAKER_THRESHOLD: int = 10
    DB_BREAKER_WINDOW_S: float = 30.0

    # Retry policy for transient failures
    RETRY_MAX_ATTEMPTS: int = 3
    RETRY_INITIAL_DELAY_S: float = 1.0
    RETRY_MULTIPLIER: float = 2.0
    RETRY_MAX_DELAY_S: float = 10.0

    log_dir: str = "logs"
    log_level: str = "INFO"

    class Config:
        env_file = ".env"
        case_sensitive = False


settings = Settings()
