"""Configuration management."""

import os
from typing import Optional
from pathlib import Path
from dotenv import load_dotenv

# Load .env file from project root
# This ensures dotenv works regardless of where the script is run from
project_root = Path(__file__).parent.parent.parent
env_file = project_root / ".env"

# override=False means existing environment variables take precedence
load_dotenv(dotenv_path=env_file, override=False)


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}")


class Config:
    """Application configuration."""
    # Application
    APP_ENV: str = os.getenv("APP_ENV", "development")
    DEBUG: bool = os.getenv("DEBUG", "false").lower() == "true"

    # Tool naming: <namespace>_<resource>_<operation>
    TOOL_NAMESPACE: str = os.getenv("TOOL_NAMESPACE", "autotask")

    # Response shaping and query bounds
    MAX_RESPONSE_RECORDS: int = _int_env("MAX_RESPONSE_RECORDS", 25)
    DEFAULT_QUERY_LIMIT: int = _int_env("DEFAULT_QUERY_LIMIT", 10)
    MAX_QUERY_LIMIT: int = _int_env("MAX_QUERY_LIMIT", 100)

    # Collaborators for the HTTP app (optional)
    METADATA_FILE: Optional[str] = os.getenv("METADATA_FILE")
    EXECUTOR_FACTORY: Optional[str] = os.getenv("EXECUTOR_FACTORY")  # "package.module:callable"


config = Config()
