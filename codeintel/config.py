"""
Configuration — loads settings from .codeintel.yaml, environment variables,
and built-in defaults (in that priority order: CLI args > env > YAML > defaults).
"""

import os

import yaml


_DEFAULTS = {
    "db_path": os.path.join("~", ".codeintel", "embeddings.db"),
    "embedding_provider": "ollama",
    "embedding_model": "",
    "ollama_base_url": "http://localhost:11434",
    "openai_api_key": "",
    "embed_timeout": 30.0,
    "embed_max_chars": 4000,
    "scan_max_files": 200,
    "batch_size": 5,
    "batch_pause": 0.05,
    "max_workers": 5,
    "watch_debounce": 0.5,
    "log_dir": os.path.join("~", ".codeintel", "logs"),
}

# Config file search locations
_CONFIG_FILENAMES = [".codeintel.yaml", ".codeintel.yml"]


def _find_config_file(explicit_path: str | None = None) -> str | None:
    """Find the config file. Checks explicit path, CWD, then user home."""
    if explicit_path:
        if os.path.isfile(explicit_path):
            return explicit_path
        return None

    # Search CWD first, then home directory
    search_dirs = [os.getcwd(), os.path.expanduser("~")]
    for d in search_dirs:
        for name in _CONFIG_FILENAMES:
            path = os.path.join(d, name)
            if os.path.isfile(path):
                return path
    return None


def _load_yaml(path: str) -> dict:
    """Load YAML file, returns empty dict on failure."""
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
        return data if isinstance(data, dict) else {}
    except (OSError, yaml.YAMLError):
        return {}


class Config:
    """Application configuration.

    Settings are resolved in priority order:
    1. CLI arguments (handled by caller)
    2. Environment variables
    3. .codeintel.yaml config file
    4. Built-in defaults
    """

    def __init__(self, yaml_data: dict | None = None):
        yd = yaml_data or {}

        def _get(env_key: str, yaml_key: str, default, cast=str):
            env_val = os.getenv(env_key)
            if env_val is not None:
                return cast(env_val)
            yaml_val = yd.get(yaml_key)
            if yaml_val is not None:
                return cast(yaml_val)
            return default

        self.DB_PATH = os.path.expanduser(
            _get("CODEINTEL_DB_PATH", "db_path", _DEFAULTS["db_path"]))

        # Embeddings
        self.EMBEDDING_PROVIDER = _get("CODEINTEL_EMBEDDING_PROVIDER", "embedding_provider",
                                       _DEFAULTS["embedding_provider"])
        self.EMBEDDING_MODEL = _get("CODEINTEL_EMBEDDING_MODEL", "embedding_model",
                                    _DEFAULTS["embedding_model"])
        self.OLLAMA_BASE_URL = _get("OLLAMA_BASE_URL", "ollama_base_url",
                                    _DEFAULTS["ollama_base_url"])
        openai_section = yd.get("openai", {}) if isinstance(yd.get("openai"), dict) else {}
        self.OPENAI_API_KEY = os.getenv("OPENAI_API_KEY") or openai_section.get(
            "api_key", _DEFAULTS["openai_api_key"])
        self.EMBED_TIMEOUT = _get("CODEINTEL_EMBED_TIMEOUT", "embed_timeout",
                                  _DEFAULTS["embed_timeout"], cast=float)
        self.EMBED_MAX_CHARS = _get("CODEINTEL_EMBED_MAX_CHARS", "embed_max_chars",
                                    _DEFAULTS["embed_max_chars"], cast=int)

        # Scanning / batching
        self.SCAN_MAX_FILES = _get("CODEINTEL_SCAN_MAX_FILES", "scan_max_files",
                                   _DEFAULTS["scan_max_files"], cast=int)
        self.BATCH_SIZE = _get("CODEINTEL_BATCH_SIZE", "batch_size",
                               _DEFAULTS["batch_size"], cast=int)
        self.BATCH_PAUSE = _get("CODEINTEL_BATCH_PAUSE", "batch_pause",
                                _DEFAULTS["batch_pause"], cast=float)
        self.MAX_WORKERS = _get("CODEINTEL_MAX_WORKERS", "max_workers",
                                _DEFAULTS["max_workers"], cast=int)
        self.WATCH_DEBOUNCE = _get("CODEINTEL_WATCH_DEBOUNCE", "watch_debounce",
                                   _DEFAULTS["watch_debounce"], cast=float)

        # Log file directory
        self.LOG_DIR = os.path.expanduser(
            _get("CODEINTEL_LOG_DIR", "log_dir", _DEFAULTS["log_dir"]))

    @classmethod
    def load(cls, config_path: str | None = None) -> "Config":
        """Load config from YAML file (if found) + env vars + defaults."""
        path = _find_config_file(config_path)
        yaml_data = _load_yaml(path) if path else {}
        return cls(yaml_data)
