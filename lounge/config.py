from zoneinfo import ZoneInfo
from pydantic import BaseModel
from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    APP_ENV: str = "dev"
    APP_SECRET: str
    DB_URL: str
    JWT_ISS: str = "lounge"
    JWT_EXP_MIN: int = 12*60
    TZ: str = "UTC"
    LOG_LEVEL: str = "INFO"
    HOST: str = "0.0.0.0"
    PORT: int = 8000
    # completion refused until cash + upi covers the amount due
    REQUIRE_FULL_PAYMENT: bool = False
    MULTI_PERSON_CATEGORIES: list[str] = ["PS5"]
    NOTIFY_WEBHOOK_URL: str | None = None
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")
settings = Settings()


class EnginePolicy(BaseModel):
    """Single-instance engine configuration, built once and passed explicitly."""
    tz: str = "UTC"
    require_full_payment: bool = False
    multi_person_categories: list[str] = ["PS5"]

    @property
    def zone(self) -> ZoneInfo:
        return ZoneInfo(self.tz)


def engine_policy(s: Settings = settings) -> EnginePolicy:
    return EnginePolicy(
        tz=s.TZ,
        require_full_payment=s.REQUIRE_FULL_PAYMENT,
        multi_person_categories=list(s.MULTI_PERSON_CATEGORIES),
    )
