import os
from pathlib import Path

from dotenv import load_dotenv

DEFAULT_DB_PATH = "data/elections.db"
DEFAULT_LOG_LEVEL = "INFO"
DEFAULT_LOG_DIR = "logs"

_FALSE_VALUES = {"0", "false", "no", "off", ""}


def load_env() -> None:
    """Load .env from the working directory if present.

    Variables already set in the environment win over the file.
    """
    env_path = Path.cwd() / ".env"
    if not env_path.exists():
        return
    load_dotenv(dotenv_path=env_path, override=False)


def get_db_path() -> Path:
    return Path(os.getenv("BALLOTBOX_DB_PATH", DEFAULT_DB_PATH))


def get_log_level() -> str:
    return os.getenv("BALLOTBOX_LOG_LEVEL", DEFAULT_LOG_LEVEL).upper()


def get_log_dir() -> Path:
    return Path(os.getenv("BALLOTBOX_LOG_DIR", DEFAULT_LOG_DIR))


def file_logging_enabled() -> bool:
    return os.getenv("BALLOTBOX_LOG_TO_FILE", "1").strip().lower() not in _FALSE_VALUES
