"""
Streetwise Client Configuration Management
"""

import os
import json
from pathlib import Path
from dataclasses import dataclass, asdict
from typing import Optional, Dict, Any

from dotenv import find_dotenv, load_dotenv


def _parse_bool(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class StreetwiseConfig:
    """Configuration for the Streetwise client"""

    # API settings
    api_base_url: str = "http://localhost:5000"
    request_timeout: Optional[float] = None  # None = wait forever, like the browser client

    # Session cookie (the browser's `credentials: include`)
    session_cookie_name: str = "session"
    session_cookie: Optional[str] = None

    # Map SDK
    map_access_token: Optional[str] = None

    # Map defaults until /api/university-settings answers (Nairobi)
    university_name: str = "Campus University"
    default_latitude: float = -1.2921
    default_longitude: float = 36.8219
    default_zoom: int = 15

    # Polling intervals (seconds)
    map_refresh_interval: float = 10.0
    feed_refresh_interval: float = 10.0
    chat_poll_interval: float = 5.0

    # Discard poll responses older than the newest one already applied
    drop_stale_responses: bool = False

    # Logging
    log_level: str = "INFO"
    log_file: Optional[str] = None
    json_logs: bool = False
    verbose: bool = False

    def load_from_file(self, config_path: str) -> None:
        """Load configuration from JSON file"""
        path = Path(config_path)
        if path.exists():
            with open(path) as f:
                data = json.load(f)
                for key, value in data.items():
                    if hasattr(self, key):
                        setattr(self, key, value)

    @classmethod
    def load_default(cls, config_path: Optional[str] = None) -> "StreetwiseConfig":
        """Load configuration: defaults, then JSON file, then .env / environment"""
        config = cls()
        path = config_path or str(Path.home() / ".streetwise" / "config.json")
        config.load_from_file(path)

        load_dotenv(find_dotenv(usecwd=True))
        config._load_from_env()

        return config

    def _load_from_env(self) -> None:
        """Load configuration from environment variables"""
        env_mappings = {
            "VITE_API_URL": "api_base_url",
            "STREETWISE_API_URL": "api_base_url",
            "MAPBOX_ACCESS_TOKEN": "map_access_token",
            "VITE_MAPBOX_ACCESS_TOKEN": "map_access_token",
            "STREETWISE_MAP_TOKEN": "map_access_token",
            "STREETWISE_SESSION_COOKIE_NAME": "session_cookie_name",
            "STREETWISE_SESSION_COOKIE": "session_cookie",
            "STREETWISE_MAP_REFRESH_INTERVAL": ("map_refresh_interval", float),
            "STREETWISE_FEED_REFRESH_INTERVAL": ("feed_refresh_interval", float),
            "STREETWISE_CHAT_POLL_INTERVAL": ("chat_poll_interval", float),
            "STREETWISE_REQUEST_TIMEOUT": ("request_timeout", float),
            "STREETWISE_DROP_STALE_RESPONSES": ("drop_stale_responses", _parse_bool),
            "STREETWISE_LOG_LEVEL": "log_level",
            "STREETWISE_LOG_FILE": "log_file",
            "STREETWISE_JSON_LOGS": ("json_logs", _parse_bool),
            "STREETWISE_VERBOSE": ("verbose", _parse_bool),
        }

        # Later entries win, so the STREETWISE_* names override the Vite ones
        for env_var, mapping in env_mappings.items():
            value = os.environ.get(env_var)
            if value:
                if isinstance(mapping, tuple):
                    attr, converter = mapping
                    setattr(self, attr, converter(value))
                else:
                    setattr(self, mapping, value)

    def to_dict(self) -> Dict[str, Any]:
        """Convert config to dictionary"""
        return asdict(self)
