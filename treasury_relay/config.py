from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    PROJECT_NAME: str = "Treasury Relay"
    API_V1_PREFIX: str = "/api/v1"
    APP_ENV: str = "development"
    LOG_LEVEL: str = "INFO"

    DATABASE_URL: str
    TEST_DATABASE_URL: Optional[str] = None

    # Chain / treasury
    CHAIN_RPC_URL: Optional[str] = None
    CHAIN_ID: Optional[int] = None
    TREASURY_PRIVATE_KEY: Optional[str] = None
    CHAIN_CONFIRMATION_TIMEOUT: float = 120.0
    CHAIN_POLL_INTERVAL: float = 1.0

    # sender_address written on withdrawal rows
    TREASURY_SENDER_LABEL: str = "treasury"

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    @property
    def treasury_configured(self) -> bool:
        return bool(self.TREASURY_PRIVATE_KEY and self.CHAIN_RPC_URL)

settings = Settings()
