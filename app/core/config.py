from typing import List

from pydantic_settings import BaseSettings

class Settings(BaseSettings):
    app_name: str = "Testimonial Moderation API"
    database_url: str = "postgresql+psycopg2://postgres:postgres@db:5432/testimonials"
    database_echo: bool = False
    log_level: str = "INFO"
    log_file: str | None = None

    # AI classifier (OpenAI Moderation API)
    openai_api_key: str | None = None
    openai_base_url: str | None = None
    openai_moderation_model: str = "omni-moderation-latest"
    ai_moderation_enabled: bool = True
    ai_moderation_timeout: float = 5.0

    # Decision thresholds
    moderation_reject_threshold: float = 0.7
    moderation_flag_threshold: float = 0.3
    brand_keyword_density_threshold: float = 0.15
    duplicate_similarity_threshold: float = 0.9
    hard_block_categories: List[str] = [
        "sexual/minors",
        "hate/threatening",
        "harassment/threatening",
        "illicit/violent",
    ]

    # Bulk actions
    bulk_history_size: int = 10
    bulk_max_batch_size: int = 100
    bulk_history_max_sessions: int = 100

    admin_api_key: str | None = None

    class Config:
        env_file = ".env"

settings = Settings()
