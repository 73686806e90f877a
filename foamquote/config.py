from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    DATABASE_URL: str = "sqlite:///./foamquote.db"
    APP_ENV: str = "production"

    # Pricing defaults
    DEFAULT_CURRENCY: str = "USD"
    MIN_CHARGE_DEFAULT: float = 0.0
    MARKUP_DEFAULT: int = 0  # percent

    # Quote facts store
    FACTS_NAMESPACE: str = "alexio:mem"
    FACTS_UPDATE_RETRIES: int = 5

    class Config:
        env_file = ".env"


settings = Settings()
