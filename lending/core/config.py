from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    APP_NAME: str = "Lending Service"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False

    # Database
    DATABASE_URL: str = "postgresql+asyncpg://postgres:postgres@db:5432/lending_db"
    TEST_DATABASE_URL: str = "postgresql+asyncpg://postgres:postgres@db:5432/lending_test_db"

    # Staff JWT
    JWT_SECRET_KEY: str = "change-me-to-a-random-secret-key-in-production"
    JWT_ALGORITHM: str = "HS256"
    JWT_ACCESS_TOKEN_EXPIRE_MINUTES: int = 30

    # Built-in Admin
    ADMIN_EMAIL: str = "admin@lending.local"
    ADMIN_PASSWORD: str = "admin123456"

    # Logging
    LOG_LEVEL: str = "INFO"

    # Reservation expiry sweep interval (seconds)
    EXPIRY_SWEEP_INTERVAL: int = 86400

    # Lending policy
    LOAN_PERIOD_DAYS: int = 15
    RESERVATION_GRACE_DAYS: int = 2
    MAX_OPEN_LOANS: int = 5
    MAX_OPEN_RESERVATIONS: int = 5
    MAX_RENEWALS: int = 3
    DAILY_LATE_FEE: float = 2.0
    DAILY_RENTAL_FEE: float = 1.0

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": True,
    }


settings = Settings()
