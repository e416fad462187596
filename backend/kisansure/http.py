import logging
import httpx
from typing import Optional
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

from kisansure.config import settings

USER_AGENT = "KisanSure/1.0 (+https://kisansure.example.com)"
SECRET_PARAMS = {"api-key", "api_key", "apikey"}
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

# httpx logs every request URL at INFO, credential included
TRANSPORT_LOGGERS = ("httpx", "httpcore")

# Global HTTP client instance
client: Optional[httpx.AsyncClient] = None


def setup_logging(level) -> None:
    """One basicConfig for the process; transport loggers stay at WARNING whatever the level."""
    logging.basicConfig(level=level, format=LOG_FORMAT)
    for name in TRANSPORT_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def build_client() -> httpx.AsyncClient:
    """Create an AsyncClient with the project's timeouts, limits and headers."""
    # - connect: 10s (establishing connection)
    # - read: HTTP_TIMEOUT_SEC (data.gov.in can be slow on 10k-row pages)
    # - write: 10s (sending request)
    # - pool: 30s (getting connection from pool)
    timeout_config = httpx.Timeout(
        connect=10.0,
        read=settings.HTTP_TIMEOUT_SEC,
        write=10.0,
        pool=30.0
    )
    return httpx.AsyncClient(
        timeout=timeout_config,
        limits=httpx.Limits(
            max_keepalive_connections=100,
            max_connections=100,
            keepalive_expiry=30
        ),
        headers={
            "Accept-Encoding": "gzip, deflate",
            "User-Agent": USER_AGENT,
        },
    )


async def init_http():
    """Initialize the global HTTP client."""
    global client
    if client is None:
        client = build_client()


async def close_http():
    """Close the global HTTP client."""
    global client
    if client:
        await client.aclose()
        client = None


def get_http_client() -> httpx.AsyncClient:
    """Get the global HTTP client instance."""
    if client is None:
        raise RuntimeError("HTTP client not initialized. Call init_http() first.")
    return client


def redact_url(url) -> str:
    """Mask credential query parameters so a URL is safe to log."""
    parts = urlsplit(str(url))
    if not parts.query:
        return str(url)
    query = [
        (k, "***" if k.lower() in SECRET_PARAMS else v)
        for k, v in parse_qsl(parts.query, keep_blank_values=True)
    ]
    return urlunsplit(parts._replace(query=urlencode(query, safe="[]*")))
