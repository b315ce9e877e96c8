"""
Configuration settings for Checklist Studio.
Load configuration from environment variables or a local .env file.
"""
import os
from pathlib import Path

from dotenv import load_dotenv

# Load environment variables from .env file in the working directory
env_file = Path.cwd() / '.env'
if env_file.exists():
    load_dotenv(env_file)


class Settings:
    """Application settings loaded from environment variables."""

    # Package paths
    PACKAGE_DIR = Path(__file__).parent
    BUILTIN_SCHEMA_DIR = PACKAGE_DIR / 'schemas'

    # Local inspection store
    STORE_PATH = Path(os.getenv('CHECKLIST_STORE_PATH', str(Path.home() / '.checklist_studio')))

    # Additional schema definitions
    SCHEMA_DIR = os.getenv('CHECKLIST_SCHEMA_DIR', '')
    DEFAULT_SCHEMA = os.getenv('CHECKLIST_DEFAULT_SCHEMA', 'electrical_installation')

    # Logging
    LOG_LEVEL = os.getenv('CHECKLIST_LOG_LEVEL', 'INFO')

    @classmethod
    def schema_dirs(cls) -> list:
        """Directories scanned for schema files, built-in first."""
        dirs = [cls.BUILTIN_SCHEMA_DIR]
        if cls.SCHEMA_DIR:
            dirs.append(Path(cls.SCHEMA_DIR))
        return dirs


settings = Settings()
