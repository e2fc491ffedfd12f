# resize_proxy/config.py
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Literal


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # Application
    app_env: Literal["dev", "staging", "prod"] = "dev"
    log_level: str = "INFO"
    host: str = "0.0.0.0"
    port: int = 8000
    allowed_origins: list[str] = ["*"]

    # Source host allow-list
    # Comma-separated hostnames, matched exactly against the URL host
    # (internationalized names in their xn-- form),
    # e.g. "images.example.com,cdn.example.org"
    url_whitelist: str = ""

    # Outbound fetch
    fetch_timeout_seconds: float = 30.0  # Total time for one source download
    fetch_connect_timeout_seconds: float = 10.0
    fetch_pool_limit: int = 20  # Max concurrent connections in the fetcher session
    max_download_mb: int = 20  # Hard cap on bytes read from a source

    # Resize / encode
    max_target_dimension: int = 8192  # Largest accepted height/width
    jpeg_quality: int = 85
    # Decompression bomb protection (Pillow MAX_IMAGE_PIXELS)
    max_source_pixels_millions: int = 50

    # Monitoring
    enable_metrics: bool = True
    enable_request_logging: bool = True

    @property
    def is_production(self) -> bool:
        return self.app_env == "prod"

    @property
    def is_staging(self) -> bool:
        return self.app_env == "staging"

    @property
    def max_download_bytes(self) -> int:
        return self.max_download_mb * 1024 * 1024

    @property
    def allowed_hosts(self) -> list[str]:
        return [h.strip() for h in self.url_whitelist.split(",") if h.strip()]

    def validate_required_for_production(self) -> list[str]:
        """Validate that required settings exist for production"""
        if not self.is_production:
            return []

        missing = []
        if not self.allowed_hosts:
            missing.append("url_whitelist")
        return missing


def warn_on_risky_config(s: "Settings") -> list[str]:
    warnings: list[str] = []

    if not s.allowed_hosts:
        warnings.append("url_whitelist is empty: the service will refuse to start.")

    if s.fetch_timeout_seconds <= 0:
        warnings.append("fetch_timeout_seconds <= 0: source downloads will never time out.")

    if s.max_download_mb > 100:
        warnings.append(
            f"max_download_mb={s.max_download_mb}: large downloads are held fully in memory."
        )

    if not 1 <= s.jpeg_quality <= 95:
        warnings.append(f"jpeg_quality={s.jpeg_quality} is outside Pillow's useful range 1-95.")

    if s.is_production and s.log_level.upper() == "DEBUG":
        warnings.append("prod: LOG_LEVEL=DEBUG logs every resize in detail.")

    return warnings


def validate_or_warn(s: "Settings") -> None:
    """
    In prod: enforce required settings (hard fail).
    In non-prod: warn only.
    """
    missing = s.validate_required_for_production()

    if missing:
        raise RuntimeError(f"Missing required settings for production: {', '.join(missing)}")

    for msg in warn_on_risky_config(s):
        print(f"[WARN][config] {msg}")


settings = Settings()
validate_or_warn(settings)
