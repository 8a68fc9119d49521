"""Application configuration helpers for SheetStock."""
from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional

from core import app_paths


logger = logging.getLogger(__name__)


SETTINGS_PATH = str(app_paths.data_path("settings.json"))

DEFAULT_WORKSHEET_TITLE = "inventory"
DEFAULT_REDIRECT_URI = "http://localhost"
DEFAULT_POLL_INTERVAL_SECONDS = 30
DEFAULT_BACKOFF_SECONDS = 60
DEFAULT_SCOPES: List[str] = [
    "https://www.googleapis.com/auth/spreadsheets",
    "https://www.googleapis.com/auth/drive.metadata.readonly",
    "openid",
    "https://www.googleapis.com/auth/userinfo.email",
]
DEFAULT_DISCOVERY_DOCS: List[str] = [
    "https://sheets.googleapis.com/$discovery/rest?version=v4",
    "https://www.googleapis.com/discovery/v1/apis/drive/v3/rest",
]
DEFAULT_RESERVED_COLUMNS: List[str] = ["Timestamp", "Email Address"]

ENVIRONMENT_OVERRIDES: Mapping[str, str] = {
    "api_key": "SHEETSTOCK_API_KEY",
    "client_id": "SHEETSTOCK_CLIENT_ID",
    "client_secret": "SHEETSTOCK_CLIENT_SECRET",
    "client_secrets_file": "SHEETSTOCK_CLIENT_SECRETS_FILE",
    "spreadsheet_id": "SHEETSTOCK_SPREADSHEET_ID",
    "worksheet_title": "SHEETSTOCK_WORKSHEET",
}


@dataclass
class EditorSettings:
    spreadsheet_id: str = ""
    worksheet_title: str = DEFAULT_WORKSHEET_TITLE
    api_key: str = ""
    client_id: str = ""
    client_secret: str = ""
    client_secrets_file: str = ""
    redirect_uri: str = DEFAULT_REDIRECT_URI
    scopes: List[str] = field(default_factory=lambda: list(DEFAULT_SCOPES))
    discovery_docs: List[str] = field(default_factory=lambda: list(DEFAULT_DISCOVERY_DOCS))
    reserved_columns: List[str] = field(default_factory=lambda: list(DEFAULT_RESERVED_COLUMNS))
    poll_interval_seconds: int = DEFAULT_POLL_INTERVAL_SECONDS
    backoff_seconds: int = DEFAULT_BACKOFF_SECONDS

    def missing_fields(self) -> List[str]:
        """Return the names of settings that must be filled before signing in."""

        missing: List[str] = []
        if not self.spreadsheet_id.strip():
            missing.append("spreadsheet_id")
        if not self.client_id.strip() and not self.client_secrets_file.strip():
            missing.append("client_id")
        return missing

    def to_json(self) -> Dict[str, object]:
        return {
            "spreadsheet_id": self.spreadsheet_id,
            "worksheet_title": self.worksheet_title,
            "api_key": self.api_key,
            "client_id": self.client_id,
            "client_secret": self.client_secret,
            "client_secrets_file": self.client_secrets_file,
            "redirect_uri": self.redirect_uri,
            "scopes": list(self.scopes),
            "discovery_docs": list(self.discovery_docs),
            "reserved_columns": list(self.reserved_columns),
            "poll_interval_seconds": self.poll_interval_seconds,
            "backoff_seconds": self.backoff_seconds,
        }


def _default_payload() -> Dict[str, object]:
    return EditorSettings().to_json()


def _clamp(value: object, default: int, *, low: int, high: int) -> int:
    try:
        return max(low, min(high, int(value)))  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return default


def _string_list(value: object) -> Optional[List[str]]:
    if not isinstance(value, list):
        return None
    return [str(entry).strip() for entry in value if isinstance(entry, str) and entry.strip()]


def _ensure_settings_file(path: str) -> Dict[str, object]:
    default_settings = _default_payload()
    if not os.path.exists(path):
        directory = os.path.dirname(path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        with open(path, "w", encoding="utf-8") as handle:
            json.dump(default_settings, handle, indent=2)
        return json.loads(json.dumps(default_settings))

    try:
        with open(path, "r", encoding="utf-8") as handle:
            data = json.load(handle)
    except (OSError, json.JSONDecodeError) as exc:
        logger.warning("Settings file %s could not be read: %s", path, exc)
        return default_settings
    if not isinstance(data, Mapping):
        return default_settings

    merged: Dict[str, object] = dict(default_settings)
    for key, value in data.items():
        if key == "poll_interval_seconds":
            merged[key] = _clamp(value, DEFAULT_POLL_INTERVAL_SECONDS, low=10, high=600)
        elif key == "backoff_seconds":
            merged[key] = _clamp(value, DEFAULT_BACKOFF_SECONDS, low=15, high=900)
        elif key in {"scopes", "discovery_docs", "reserved_columns"}:
            entries = _string_list(value)
            if entries is not None:
                merged[key] = entries
        elif key in default_settings and isinstance(value, str):
            merged[key] = value.strip()
    return merged


def _apply_environment(data: Dict[str, object]) -> None:
    for key, env_var in ENVIRONMENT_OVERRIDES.items():
        value = os.getenv(env_var)
        if value:
            data[key] = value.strip()


def load_editor_settings(path: str = SETTINGS_PATH) -> EditorSettings:
    data = _ensure_settings_file(path)
    _apply_environment(data)

    worksheet_title = str(data.get("worksheet_title") or "").strip() or DEFAULT_WORKSHEET_TITLE
    return EditorSettings(
        spreadsheet_id=str(data.get("spreadsheet_id", "")),
        worksheet_title=worksheet_title,
        api_key=str(data.get("api_key", "")),
        client_id=str(data.get("client_id", "")),
        client_secret=str(data.get("client_secret", "")),
        client_secrets_file=str(data.get("client_secrets_file", "")),
        redirect_uri=str(data.get("redirect_uri") or DEFAULT_REDIRECT_URI),
        scopes=list(data.get("scopes") or DEFAULT_SCOPES),  # type: ignore[arg-type]
        discovery_docs=list(data.get("discovery_docs") or DEFAULT_DISCOVERY_DOCS),  # type: ignore[arg-type]
        reserved_columns=list(data.get("reserved_columns", DEFAULT_RESERVED_COLUMNS)),  # type: ignore[arg-type]
        poll_interval_seconds=int(data.get("poll_interval_seconds", DEFAULT_POLL_INTERVAL_SECONDS)),  # type: ignore[arg-type]
        backoff_seconds=int(data.get("backoff_seconds", DEFAULT_BACKOFF_SECONDS)),  # type: ignore[arg-type]
    )


def save_editor_settings(settings: EditorSettings, path: str = SETTINGS_PATH) -> None:
    directory = os.path.dirname(path)
    if directory:
        os.makedirs(directory, exist_ok=True)

    with open(path, "w", encoding="utf-8") as handle:
        json.dump(settings.to_json(), handle, indent=2)


__all__ = [
    "DEFAULT_BACKOFF_SECONDS",
    "DEFAULT_DISCOVERY_DOCS",
    "DEFAULT_POLL_INTERVAL_SECONDS",
    "DEFAULT_REDIRECT_URI",
    "DEFAULT_RESERVED_COLUMNS",
    "DEFAULT_SCOPES",
    "DEFAULT_WORKSHEET_TITLE",
    "EditorSettings",
    "SETTINGS_PATH",
    "load_editor_settings",
    "save_editor_settings",
]
