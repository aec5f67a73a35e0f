from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List


class Settings(BaseSettings):
    # ==========================================================================
    # ENVIRONMENT
    # ==========================================================================
    environment: str = "dev"  # "dev", "prod"
    debug: bool = True

    # ==========================================================================
    # DATABASE
    # ==========================================================================
    database_url: str = "sqlite:///./v4ult.db"

    # ==========================================================================
    # ADMIN CONSOLE
    # ==========================================================================
    admin_token: str = ""  # Admin endpoints refuse every request while empty
    admin_token_header: str = "X-V4ULT-Admin-Token"

    # ==========================================================================
    # REVEAL PRICING
    # ==========================================================================
    reveal_price: int = 99  # Whole currency units
    reveal_currency: str = "INR"

    # ==========================================================================
    # SHORT CODES
    # ==========================================================================
    short_code_prefix: str = "STC"
    short_code_length: int = 4
    short_code_max_attempts: int = 5

    # ==========================================================================
    # SUBMISSION LIMITS
    # ==========================================================================
    body_max_length: int = 1000
    alias_max_length: int = 40
    categories: str = "coffee_date,dinner,just_talk,study_session,adventure,the_one"

    # ==========================================================================
    # TOXICITY
    # ==========================================================================
    toxicity_provider: str = "perspective"  # "perspective", "openai", "none"
    toxicity_threshold: float = 0.70  # Score > this = toxic
    toxicity_auto_reject: bool = True  # False = persist flagged for admin review
    perspective_api_key: str = ""
    perspective_api_url: str = "https://commentanalyzer.googleapis.com/v1alpha1/comments:analyze"
    openai_api_key: str = ""
    openai_moderation_model: str = "omni-moderation-latest"
    provider_timeout: float = 10.0  # Seconds, for every outbound provider call

    # ==========================================================================
    # IDENTITY PROVIDER (Supabase)
    # ==========================================================================
    supabase_url: str = ""
    supabase_service_role_key: str = ""

    # ==========================================================================
    # PAYMENT PROOF RATE LIMITING
    # ==========================================================================
    payment_cooldown_seconds: float = 5.0  # Min gap between proofs per origin

    # ==========================================================================
    # RECONCILIATION NOTIFICATIONS (Telegram)
    # ==========================================================================
    telegram_bot_token: str = ""
    telegram_chat_id: str = ""

    # ==========================================================================
    # CORS
    # ==========================================================================
    cors_origins: str = "*"  # Comma-separated origins, or "*" for all

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ==========================================================================
    # COMPUTED PROPERTIES
    # ==========================================================================

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "prod"

    @property
    def cors_origins_list(self) -> list:
        if self.cors_origins == "*":
            return ["*"]
        return [origin.strip() for origin in self.cors_origins.split(",")]

    @property
    def categories_list(self) -> List[str]:
        return [c.strip() for c in self.categories.split(",") if c.strip()]

    @property
    def supabase_configured(self) -> bool:
        return bool(self.supabase_url and self.supabase_service_role_key)


settings = Settings()
