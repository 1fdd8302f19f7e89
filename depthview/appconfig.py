"""Persistent application settings stored in an INI file."""

from __future__ import annotations

import configparser
import os
from pathlib import Path

APP_NAME = "DepthViewer"
_SECTION = "General"
_FALSE_STRINGS = {"", "0", "false"}


def default_config_path(app_name: str = APP_NAME) -> Path:
    """Location of the settings file under the user's home directory."""
    return Path.home() / app_name / "config.ini"


def _to_bool(text: str) -> bool:
    return text.strip().lower() not in _FALSE_STRINGS


class AppConfig:
    """Language, default save path and auto-naming settings; every change is saved."""

    def __init__(self, path: str | os.PathLike | None = None) -> None:
        self._path = Path(path) if path is not None else default_config_path()
        parser = self._new_parser()
        try:
            parser.read(self._path, encoding="utf-8")
        except configparser.Error:
            parser = self._new_parser()
        section = parser[_SECTION] if parser.has_section(_SECTION) else {}
        self._language = section.get("language", "en")
        self._default_save_path = section.get("defaultSavePath", str(Path.home()))
        self._auto_name = _to_bool(section.get("autoNameWhenCapturing", "false"))

    @staticmethod
    def _new_parser() -> configparser.ConfigParser:
        parser = configparser.ConfigParser(interpolation=None)
        parser.optionxform = str
        return parser

    @property
    def path(self) -> Path:
        return self._path

    def save(self) -> None:
        """Write all settings to the file."""
        parser = self._new_parser()
        parser[_SECTION] = {
            "language": self._language,
            "defaultSavePath": self._default_save_path,
            "autoNameWhenCapturing": "true" if self._auto_name else "false",
        }
        self._path.parent.mkdir(parents=True, exist_ok=True)
        with open(self._path, "w", encoding="utf-8") as fp:
            parser.write(fp)

    @property
    def language(self) -> str:
        return self._language

    @language.setter
    def language(self, value: str) -> None:
        self._language = value
        self.save()

    @property
    def default_save_path(self) -> str:
        return self._default_save_path

    @default_save_path.setter
    def default_save_path(self, value: str) -> None:
        self._default_save_path = value
        self.save()

    @property
    def auto_name_when_capturing(self) -> bool:
        return self._auto_name

    @auto_name_when_capturing.setter
    def auto_name_when_capturing(self, value: bool) -> None:
        self._auto_name = bool(value)
        self.save()

    def __enter__(self) -> AppConfig:
        return self

    def __exit__(self, *exc_info) -> None:
        self.save()