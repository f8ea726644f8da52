import os
from pathlib import Path
from typing import List

DEFAULT_CORS_ORIGINS = ["http://localhost:5173", "http://localhost:8080"]


def get_data_path(ensure_exists: bool = False) -> Path:
    """Get the server data directory (set TABLETOP_DATA_DIR to override).

    Args:
        ensure_exists: If True, raises error if directory doesn't exist.
                      If False, returns path even if it doesn't exist (for creation).
    """
    env_path = os.getenv("TABLETOP_DATA_DIR")
    if env_path:
        return Path(env_path)

    data_dir = Path.cwd() / "tabletop-data"

    if ensure_exists and not data_dir.exists():
        raise RuntimeError(
            f"tabletop-data not found at {data_dir}. "
            f"Please run from repo root or set TABLETOP_DATA_DIR environment variable."
        )

    return data_dir


def get_config_dir() -> Path:
    """Directory holding bundled YAML config (rate limits)."""
    env_path = os.getenv("TABLETOP_CONFIG_DIR")
    if env_path:
        return Path(env_path)
    return Path(__file__).resolve().parent.parent / "game_server" / "config"


def get_cors_origins() -> List[str]:
    raw = os.getenv("TABLETOP_CORS_ORIGINS")
    if not raw:
        return list(DEFAULT_CORS_ORIGINS)
    return [origin.strip() for origin in raw.split(",") if origin.strip()]


def get_port() -> int:
    return int(os.getenv("PORT", "8000"))
