"""Application settings and validation."""

import os


class Settings:
    ENV: str
    DATABASE_URL: str
    JWT_SECRET: str
    ALLOW_INSECURE_JWT: bool
    ALLOW_DEV_CORS: bool
    API_BASE_URL: str
    HTTP_TIMEOUT_SECONDS: float
    RESOLVE_TIMEOUT_SECONDS: float
    LOG_LEVEL: str

    def __init__(self):
        self.ENV = os.getenv("ENV", "dev").lower()
        self.DATABASE_URL = os.getenv("DATABASE_URL", "")
        self.JWT_SECRET = os.getenv("JWT_SECRET", "change_me_for_prod")
        self.ALLOW_INSECURE_JWT = os.getenv("ALLOW_INSECURE_JWT", "false").lower() == "true"
        self.ALLOW_DEV_CORS = os.getenv("ALLOW_DEV_CORS", "true").lower() == "true"
        self.API_BASE_URL = os.getenv("API_BASE_URL", "http://127.0.0.1:8000")
        self.HTTP_TIMEOUT_SECONDS = float(os.getenv("HTTP_TIMEOUT_SECONDS", "60"))  # 60 s default
        self.RESOLVE_TIMEOUT_SECONDS = float(os.getenv("RESOLVE_TIMEOUT_SECONDS", "10"))
        self.LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
        self._validate()

    def _validate(self):
        if self.ENV != "dev" and not self.ALLOW_INSECURE_JWT and self.JWT_SECRET == "change_me_for_prod":
            raise RuntimeError("JWT_SECRET must be set to a non-default value in non-dev environments")
        if self.HTTP_TIMEOUT_SECONDS <= 0:
            raise RuntimeError("HTTP_TIMEOUT_SECONDS must be positive")


settings = Settings()
