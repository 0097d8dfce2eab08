from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    DATABASE_URL: str = "postgresql://karma:karma@db:5432/karma"
    APP_ENV: str = "development"
    LOG_LEVEL: str = "INFO"

    # Comma-separated allowed origins, or "*" to allow all.
    CORS_ORIGINS: str = "*"

    # Text completion (OpenAI-compatible chat endpoint).
    # The LLM classification tier is disabled while LLM_API_KEY is empty.
    LLM_API_KEY: str = ""
    LLM_BASE_URL: str = "https://api.openai.com/v1"
    LLM_MODEL: str = "gpt-4o-mini"
    LLM_TIMEOUT_SECONDS: float = 30.0
    LLM_TEMPERATURE: float = 0.7
    LLM_MAX_TOKENS: int = 500

    # Active weight rules are re-read at most this often.
    RULE_CACHE_TTL_SECONDS: float = 60.0

    # Heuristic fallback vocabulary, comma-separated.
    POSITIVE_KEYWORDS: str = (
        "help,support,kind,grateful,thank,donate,give,learn,study,"
        "meditate,mindful,volunteer,share,forgive,exercise,care"
    )
    NEGATIVE_KEYWORDS: str = (
        "angry,anger,rage,shout,yell,lazy,procrastinate,lie,cheat,"
        "dishonest,selfish,greed,insult,hurt,ignore,waste"
    )

    @property
    def cors_origins_list(self) -> list[str]:
        if self.CORS_ORIGINS.strip() == "*":
            return ["*"]
        return [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]

    @property
    def positive_keywords_list(self) -> list[str]:
        return _split_keywords(self.POSITIVE_KEYWORDS)

    @property
    def negative_keywords_list(self) -> list[str]:
        return _split_keywords(self.NEGATIVE_KEYWORDS)

    @property
    def llm_enabled(self) -> bool:
        return bool(self.LLM_API_KEY.strip())


def _split_keywords(raw: str) -> list[str]:
    return [k.strip().lower() for k in raw.split(",") if k.strip()]


settings = Settings()
