from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    firebase_service_account: str | None = None
    firebase_cert_path: str | None = None
    firebase_database_url: str | None = None
    use_in_memory_backends: bool = False

    openrouter_api_key: str = ""
    openrouter_url: str = "https://openrouter.ai/api/v1/chat/completions"
    openrouter_referer: str = "https://archiflow-84df3.web.app"
    openrouter_title: str = "Archiflow"
    model_audio: str = "google/gemini-2.0-flash-001"
    model_text: str = "google/gemini-2.0-flash-lite-001"
    ai_timeout_seconds: float = Field(default=120.0, gt=0)

    rate_limit_window_ms: int = Field(default=60_000, ge=1)
    rate_limit_max_requests: int = Field(default=30, ge=1)
    rate_limit_max_tracked: int = Field(default=10_000, ge=1)
    upstream_timeout_seconds: float = Field(default=10.0, gt=0)

    default_credits_total: int = Field(default=100, ge=0)
    cost_transcribe: int = Field(default=1, ge=1)
    cost_generate_report: int = Field(default=2, ge=1)
    cost_refine_report: int = Field(default=1, ge=1)
    cost_convert_pdf: int = Field(default=1, ge=1)

    cors_origins: list[str] = ["*"]
    log_level: str = "INFO"
    log_json: bool = True
    host: str = "0.0.0.0"
    port: int = 5000

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"

    def cost_for(self, operation: str) -> int:
        """Credits charged for one call of a metered AI operation."""
        try:
            return getattr(self, f"cost_{operation}")
        except AttributeError:
            raise KeyError(f"Unknown metered operation: {operation}") from None

    @property
    def firebase_configured(self) -> bool:
        return bool(self.firebase_service_account or self.firebase_cert_path)


settings = Settings()
