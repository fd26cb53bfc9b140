"""
Configuration management.

The ``Settings`` dataclass reads configuration directly from
environment variables.  Defaults are provided for all fields so the
service starts with a local SQLite file and no external routing
provider.  In a production deployment override them via environment
variables.
"""

import os
from dataclasses import dataclass


@dataclass
class Settings:
    """Application settings loaded from environment variables."""

    project_name: str = os.getenv("PROJECT_NAME", "Civic Portal API")
    api_version: str = os.getenv("API_VERSION", "1.0.0")
    debug: bool = os.getenv("DEBUG", "false").lower() in {"1", "true", "yes"}
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    log_file: str = os.getenv("LOG_FILE", "")
    secret_key: str = os.getenv("SECRET_KEY", "change_me")
    access_token_expire_minutes: int = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", str(60 * 24)))
    algorithm: str = os.getenv("ALGORITHM", "HS256")

    # Static token treated as the portal administrator (user_id 1).
    super_admin_static_token: str = os.getenv("SUPER_ADMIN_TOKEN", "")

    # Comma-separated tokens for trusted backend services (permit kiosks,
    # the citizen portal frontend).  Requests presenting one of these are
    # authenticated with ``service_role_id``.
    service_tokens: str = os.getenv("SERVICE_TOKENS", "")
    service_role_id: int = int(os.getenv("SERVICE_ROLE_ID", "2"))

    # Path to the SQLite database.  Relative paths are resolved against
    # the project root by ``core.db``.
    database_url: str = os.getenv("DATABASE_URL", "civic_portal.db")

    cors_origins: str = os.getenv("CORS_ORIGINS", "*")

    # Fallback map center (Quezon City) used when a cemetery has no
    # boundary and a plot has no coordinates.
    default_map_lat: float = float(os.getenv("DEFAULT_MAP_LAT", "14.6760"))
    default_map_lng: float = float(os.getenv("DEFAULT_MAP_LNG", "121.0437"))

    # Average walking speed in metres per second for navigation estimates.
    walking_speed_mps: float = float(os.getenv("WALKING_SPEED_MPS", "1.4"))

    # OpenRouteService directions.  Without an API key the navigation
    # service answers with a straight-line estimate.
    openroute_api_key: str = os.getenv("OPENROUTE_API_KEY", "")
    openroute_base_url: str = os.getenv("OPENROUTE_BASE_URL", "https://api.openrouteservice.org")
    openroute_timeout: float = float(os.getenv("OPENROUTE_TIMEOUT", "10"))


# Instantiate settings once so other modules can import it without
# repeatedly reading environment variables.
settings = Settings()
