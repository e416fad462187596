# backend/kisansure/config.py
import os
from dotenv import load_dotenv
from pathlib import Path

dotenv_path = Path(__file__).parents[2] / '.env'
load_dotenv(dotenv_path)


class Settings:
    def __init__(self) -> None:
        # --- Data.gov.in (Agmarknet) ---
        # The dashboard's .env names the key VITE_AGMARKNET_API_KEY; older deployments use DATA_GOV_IN_API_KEY.
        self.AGMARKNET_API_KEY: str = os.getenv("VITE_AGMARKNET_API_KEY") or os.getenv("DATA_GOV_IN_API_KEY", "")
        self.DATAGOV_BASE: str = os.getenv("DATAGOV_BASE", "https://api.data.gov.in/resource").rstrip("/")
        self.AGMARKNET_RESOURCE_ID: str = os.getenv("AGMARKNET_RESOURCE_ID", "9ef84268-d588-465a-a308-a864a43d0070")

        # --- Relay ---
        self.PROXY_HOST: str = os.getenv("PROXY_HOST", "0.0.0.0")
        self.PROXY_PORT: int = int(os.getenv("PROXY_PORT", "5000"))
        self.CORS_ORIGINS: list[str] = [
            o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()
        ] or ["*"]

        # --- Market client / price board ---
        self.MARKET_API_BASE: str = os.getenv("MARKET_API_BASE", f"http://localhost:{self.PROXY_PORT}/api/agmarknet")
        self.MARKET_MODE: str = os.getenv("MARKET_MODE", "live").strip().lower()

        # --- Web search (price board secondary source) ---
        self.SERPER_API_KEY: str = os.getenv("SERPER_API_KEY", "")
        self.SERPER_URL: str = os.getenv("SERPER_URL", "https://google.serper.dev/search")

        # --- HTTP ---
        self.HTTP_TIMEOUT_SEC: float = float(os.getenv("HTTP_TIMEOUT_SEC", "25"))

        self.LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()


def get_settings() -> Settings:
    """Read configuration from the environment (FastAPI dependency)."""
    return Settings()


settings = Settings()
