"""
Settings Store Module

Persists the runtime settings an admin can change from the dashboard: the
Supabase project URL, its access key and the last Google Sheets URL used for
imports. Values resolve as persisted setting -> environment -> built-in default.
"""

import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

# Load environment variables
load_dotenv()

# Hosted project: IOM DELIVERY REPORT
DEFAULT_SUPABASE_URL = "https://ldwxltpzaqcddblnnrlb.supabase.co"
DEFAULT_SUPABASE_KEY = "sb_publishable_gVXmFtLsUf9EYG8dZPOg7w_gjrdUQFH"

# Admin screen gate. Only hides the upload UI; it does not protect the data.
ADMIN_USERNAME = os.getenv("IOM_ADMIN_USER", "admin")
ADMIN_PASSWORD = os.getenv("IOM_ADMIN_PASSWORD", "banglalink12345")

SETTINGS_FILE_NAME = "settings.json"


def get_data_dir() -> Path:
    """Directory holding the settings file and the local records cache."""
    return Path(os.getenv("IOM_REPORT_DATA_DIR", Path.home() / ".iom_report"))


def is_valid_url(url: Any) -> bool:
    return isinstance(url, str) and (url.startswith("http://") or url.startswith("https://"))


@dataclass(frozen=True)
class BackendConfig:
    """Target of the remote data gateway."""

    url: str
    key: str

    @property
    def project_ref(self) -> str:
        """Host name without the domain, e.g. 'ldwxltpzaqcddblnnrlb'."""
        host = self.url.split("://", 1)[-1].split("/", 1)[0]
        return host.split(".", 1)[0]


class SettingsStore:
    """JSON-file backed settings; read and write failures never propagate."""

    def __init__(self, path: Optional[Path] = None):
        self.path = Path(path) if path else get_data_dir() / SETTINGS_FILE_NAME

    def _read(self) -> Dict[str, Any]:
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
            return data if isinstance(data, dict) else {}
        except FileNotFoundError:
            return {}
        except (OSError, ValueError) as e:
            logger.warning(f"Could not read settings from {self.path}: {e}")
            return {}

    def _get_text(self, data: Dict[str, Any], name: str) -> Optional[str]:
        """A stored string setting; other JSON types read as unset."""
        value = data.get(name)
        if value is None or isinstance(value, str):
            return value
        logger.warning(f"Ignoring non-text setting {name}={value!r} in {self.path}")
        return None

    def _write(self, updates: Dict[str, Any]) -> None:
        data = self._read()
        data.update(updates)
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.path, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2)
        except OSError as e:
            logger.warning(f"Could not save settings to {self.path}: {e}")

    def load_backend_config(self) -> BackendConfig:
        data = self._read()

        url = self._get_text(data, "supabase_url") or os.getenv("SUPABASE_URL") or DEFAULT_SUPABASE_URL
        if not is_valid_url(url):
            logger.warning(f"Ignoring malformed Supabase URL {url!r}, using default project")
            url = DEFAULT_SUPABASE_URL

        key = self._get_text(data, "supabase_anon_key") or os.getenv("SUPABASE_ANON_KEY") or DEFAULT_SUPABASE_KEY
        return BackendConfig(url=url, key=key)

    def save_backend_config(self, url: str, key: str) -> BackendConfig:
        """Persist a new target. An invalid URL is not stored; the key always is."""
        updates = {"supabase_anon_key": key.strip()}
        if is_valid_url(url.strip()):
            updates["supabase_url"] = url.strip()
        else:
            logger.warning(f"Not saving malformed Supabase URL {url!r}")
        self._write(updates)
        return self.load_backend_config()

    def get_sheet_url(self) -> str:
        return self._get_text(self._read(), "sheet_url") or ""

    def set_sheet_url(self, url: str) -> None:
        self._write({"sheet_url": url})
