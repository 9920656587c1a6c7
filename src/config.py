"""Runtime settings.

Resolution order: command-line option > environment variable > project
.env file > default. The .env file lives at the project root and uses
plain ``KEY=value`` lines; ``#`` starts a comment.
"""
from __future__ import annotations
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Mapping, Optional
import os

DOTENV_PATH = Path(__file__).resolve().parent.parent / '.env'
DEFAULT_DATA_FILE = Path(__file__).resolve().parent.parent / 'data' / 'items.json'


def read_dotenv(path: Optional[Path] = None) -> Dict[str, str]:
    """Parse a .env file; missing or unreadable file -> empty dict."""
    env_path = path or DOTENV_PATH
    values: Dict[str, str] = {}
    try:
        text = env_path.read_text()
    except OSError:
        return values
    for line in text.splitlines():
        line = line.strip()
        if not line or line.startswith('#') or '=' not in line:
            continue
        k, v = line.split('=', 1)
        values[k.strip()] = v.strip().strip('"').strip("'")
    return values


def truthy(value: Optional[str], default: bool = True) -> bool:
    if value is None:
        return default
    return value.strip().lower() not in {"0", "false", "no", "off", ""}


@dataclass
class Settings:
    api_url: Optional[str] = None
    token: Optional[str] = None
    project_id: Optional[str] = None
    data_file: Path = DEFAULT_DATA_FILE
    timeout: float = 10.0
    log_level: str = "WARNING"
    log_file: Optional[Path] = None
    alt_screen: bool = True
    promotion_rollback: str = "partial"

    @classmethod
    def load(cls, environ: Optional[Mapping[str, str]] = None, dotenv: Optional[Mapping[str, str]] = None) -> "Settings":
        env = dict(read_dotenv() if dotenv is None else dotenv)
        env.update(os.environ if environ is None else environ)

        def get(key: str) -> Optional[str]:
            value = env.get(key)
            return value if value else None

        timeout = get("KANBAN_TIMEOUT")
        data_file = get("KANBAN_DATA_FILE")
        log_file = get("KANBAN_LOG_FILE")
        return cls(
            api_url=get("KANBAN_API_URL"),
            token=get("KANBAN_TOKEN"),
            project_id=get("KANBAN_PROJECT_ID"),
            data_file=Path(data_file) if data_file else DEFAULT_DATA_FILE,
            timeout=float(timeout) if timeout else 10.0,
            log_level=(get("KANBAN_LOG_LEVEL") or "WARNING").upper(),
            log_file=Path(log_file) if log_file else None,
            alt_screen=truthy(env.get("KANBAN_ALT_SCREEN"), True),
            promotion_rollback=(get("KANBAN_PROMOTION_ROLLBACK") or "partial").lower(),
        )
