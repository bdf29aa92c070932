from pydantic import SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict

from lead_relay.models.relay import GenfinCredentials


class Settings(BaseSettings):
    genfin_base_url: str
    genfin_username: str
    genfin_password: SecretStr
    genfin_affiliate_number: str
    genfin_ext_link_id: str
    genfin_timeout_seconds: float = 15.0
    genfin_max_attempts: int = 1
    supabase_url: str
    supabase_service_role_key: str
    relay_webhook_secret: str | None = None
    relay_surface_error_status: bool = False
    audit_failed_submissions: bool = False
    internal_api_secret: str | None = None
    log_level: str = "INFO"
    log_file: str | None = None  # e.g. logs/app.log

    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
    )

    def genfin_credentials(self) -> GenfinCredentials:
        return GenfinCredentials(
            base_url=self.genfin_base_url,
            username=self.genfin_username,
            password=self.genfin_password,
        )


settings = Settings()
