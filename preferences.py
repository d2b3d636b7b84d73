from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Optional

from config_utils import read_str_env

FROM_LANG_KEY = "translator_from_lang"
TO_LANG_KEY = "translator_to_lang"
AUTO_TRANSLATE_KEY = "translator_auto_translate"

DEFAULT_FROM_LANG = "en"
DEFAULT_TO_LANG = "es"


def default_preferences_path() -> Path:
    configured = read_str_env("PREFERENCES_PATH", "")
    if configured:
        return Path(configured).expanduser()
    return Path.home() / ".config" / "live_voice_translator" / "preferences.json"


class JsonPreferenceStore:
    def __init__(self, path: Optional[Path] = None) -> None:
        self._path = path or default_preferences_path()

    def get(self, key: str, default: str) -> str:
        value = self._read_all().get(key)
        return default if value is None else str(value)

    def set(self, key: str, value: str) -> None:
        data = self._read_all()
        data[key] = value
        self._write_all(data)

    def _read_all(self) -> dict:
        if not self._path.exists():
            return {}
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, OSError) as exc:
            logging.warning("preferences_unreadable path=%s error=%s", self._path, exc)
            return {}
        return data if isinstance(data, dict) else {}

    def _write_all(self, data: dict) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._path.write_text(json.dumps(data, ensure_ascii=False, indent=2), encoding="utf-8")
