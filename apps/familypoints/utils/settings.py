# apps/familypoints/utils/settings.py
import os
from typing import List

from dotenv import load_dotenv

load_dotenv()


def _csv(value: str) -> List[str]:
    return [x.strip() for x in (value or "").split(",") if x.strip()]


class Settings:
    """
    Process-wide configuration, read once from the environment (.env aware).
    """

    def __init__(self) -> None:
        self.FAMILYPOINTS_VERSION = os.getenv("FAMILYPOINTS_VERSION", "0.1.0")
        self.ENVIRONMENT = os.getenv("ENVIRONMENT", "production")
        self.LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

        self.SUPABASE_URL = os.getenv("SUPABASE_URL", "").strip()
        self.SUPABASE_KEY = (
            os.getenv("SUPABASE_SERVICE_ROLE_KEY") or os.getenv("SUPABASE_ANON_KEY") or ""
        ).strip()

        # "off" | "allowlist"
        self.CORS_MODE = os.getenv("CORS_MODE", "off").strip().lower()
        self.CORS_ALLOW_ORIGINS = _csv(os.getenv("CORS_ALLOW_ORIGINS", ""))

    @property
    def supabase_configured(self) -> bool:
        return bool(self.SUPABASE_URL and self.SUPABASE_KEY)


settings = Settings()
