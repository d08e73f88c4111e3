"""core.config
---------------

Configuration loader/manager for AgriSentinel. Provides a central API for
loading settings from YAML/TOML/JSON and retrieving them via
:py:meth:`ConfigManager.get`.
"""

import os
import json
from pathlib import Path
from typing import Any

import yaml
import toml


class ConfigValidationError(Exception):
    """Raised when configuration loading or validation fails."""


# Bundled defaults for the dashboard and CLI
DEFAULT_CONFIG_PATH = Path(__file__).resolve().parents[1] / "resources" / "webapp.toml"


class ConfigManager:
    """
    Loads and manages configuration from file or defaults.
    Values loaded from a file override the built-in defaults section by
    section.
    """

    DEFAULT_RASTER: dict[str, Any] = {
        "base_url": "http://localhost:8501/app/static/tifs",
        "default_asset": "s2_Cocoa_ID_bssI9w_2024_01.tif",
        "resolution": 64,
        "opacity": 0.6,
        "max_zoom": 17,
        "fetch_timeout": None,
    }

    DEFAULT_MAP: dict[str, Any] = {
        "zoom": 15,
        "height": 500,
        "tiles": "https://{s}.tile.openstreetmap.org/{z}/{x}/{y}.png",
        "attribution": "&copy; OpenStreetMap contributors",
    }

    DEFAULT_PARCEL: dict[str, Any] = {
        "culture_types": ["Cocoa", "Coffee", "Rubber", "Cashew", "Oil palm"],
    }

    def __init__(self, config_path=None):
        self.config: dict[str, Any] = {
            "raster": dict(self.DEFAULT_RASTER),
            "map": dict(self.DEFAULT_MAP),
            "parcel": dict(self.DEFAULT_PARCEL),
        }
        if config_path:
            self.load(config_path)

    @classmethod
    def default(cls) -> "ConfigManager":
        """Return a manager loaded from the bundled ``webapp.toml``."""
        return cls(str(DEFAULT_CONFIG_PATH))

    def load(self, path: str) -> None:
        """
        Load configuration from a file (YAML, TOML, or JSON).
        Dict sections are merged into existing sections; other keys overwrite.
        """
        ext = os.path.splitext(path)[1].lower()
        try:
            with open(path, "r", encoding="utf-8") as f:
                if ext in (".yaml", ".yml"):
                    data = yaml.safe_load(f)
                elif ext == ".toml":
                    data = toml.load(f)
                elif ext == ".json":
                    data = json.load(f)
                else:
                    raise ConfigValidationError(f"Unsupported config format: {ext}")
        except Exception as e:
            raise ConfigValidationError(
                f"Failed to load config from {path}: {e}"
            ) from e
        if not isinstance(data, dict):
            raise ConfigValidationError(f"Config file {path} did not produce a dict")
        for key, value in data.items():
            current = self.config.get(key)
            if isinstance(current, dict) and isinstance(value, dict):
                current.update(value)
            else:
                self.config[key] = value

    def get(self, key, default=None):
        """
        Retrieve a configuration value by key, or return `default` if not present.
        """
        return self.config.get(key, default)

    def get_section(self, name: str) -> dict[str, Any]:
        """Return the section *name* as a dict, or an empty dict."""
        section = self.config.get(name)
        return dict(section) if isinstance(section, dict) else {}
