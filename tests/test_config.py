"""Tests for codeintel.config — defaults, YAML file and environment overrides."""

import os
import textwrap

import pytest

from codeintel.config import Config, _find_config_file, _load_yaml

_ENV_KEYS = [
    "CODEINTEL_DB_PATH", "CODEINTEL_EMBEDDING_PROVIDER", "CODEINTEL_EMBEDDING_MODEL",
    "OLLAMA_BASE_URL", "OPENAI_API_KEY", "CODEINTEL_EMBED_TIMEOUT",
    "CODEINTEL_EMBED_MAX_CHARS", "CODEINTEL_SCAN_MAX_FILES", "CODEINTEL_BATCH_SIZE",
    "CODEINTEL_BATCH_PAUSE", "CODEINTEL_MAX_WORKERS", "CODEINTEL_WATCH_DEBOUNCE",
    "CODEINTEL_LOG_DIR",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for key in _ENV_KEYS:
        monkeypatch.delenv(key, raising=False)


def _write_yaml(tmp_path, text):
    path = tmp_path / ".codeintel.yaml"
    path.write_text(textwrap.dedent(text))
    return str(path)


def test_defaults():
    cfg = Config()
    assert cfg.DB_PATH == os.path.expanduser(os.path.join("~", ".codeintel", "embeddings.db"))
    assert cfg.EMBEDDING_PROVIDER == "ollama"
    assert cfg.OLLAMA_BASE_URL == "http://localhost:11434"
    assert cfg.OPENAI_API_KEY == ""
    assert cfg.EMBED_MAX_CHARS == 4000
    assert cfg.SCAN_MAX_FILES == 200
    assert cfg.BATCH_SIZE == 5
    assert cfg.BATCH_PAUSE == 0.05
    assert cfg.WATCH_DEBOUNCE == 0.5


def test_yaml_values(tmp_path):
    path = _write_yaml(tmp_path, """\
        db_path: /data/ci.db
        embedding_provider: openai
        embed_max_chars: 2000
        batch_pause: 0
        openai:
          api_key: sk-from-yaml
    """)
    cfg = Config.load(path)
    assert cfg.DB_PATH == "/data/ci.db"
    assert cfg.EMBEDDING_PROVIDER == "openai"
    assert cfg.EMBED_MAX_CHARS == 2000
    assert cfg.BATCH_PAUSE == 0.0
    assert cfg.OPENAI_API_KEY == "sk-from-yaml"


def test_env_beats_yaml(tmp_path, monkeypatch):
    path = _write_yaml(tmp_path, """\
        batch_size: 3
        embedding_provider: openai
    """)
    monkeypatch.setenv("CODEINTEL_BATCH_SIZE", "9")
    monkeypatch.setenv("CODEINTEL_EMBEDDING_PROVIDER", "none")
    monkeypatch.setenv("OPENAI_API_KEY", "sk-env")
    cfg = Config.load(path)
    assert cfg.BATCH_SIZE == 9
    assert cfg.EMBEDDING_PROVIDER == "none"
    assert cfg.OPENAI_API_KEY == "sk-env"


def test_paths_expand_user(monkeypatch):
    monkeypatch.setenv("CODEINTEL_LOG_DIR", "~/ci-logs")
    assert Config().LOG_DIR == os.path.expanduser("~/ci-logs")


def test_explicit_missing_file_gives_defaults(tmp_path):
    assert _find_config_file(str(tmp_path / "absent.yaml")) is None
    assert Config.load(str(tmp_path / "absent.yaml")).BATCH_SIZE == 5


def test_config_found_in_cwd(tmp_path, monkeypatch):
    _write_yaml(tmp_path, "batch_size: 7\n")
    monkeypatch.chdir(tmp_path)
    assert _find_config_file() == os.path.join(str(tmp_path), ".codeintel.yaml")


def test_bad_yaml_is_ignored(tmp_path):
    path = _write_yaml(tmp_path, "key: [unclosed\n")
    assert _load_yaml(path) == {}
    assert _load_yaml(str(tmp_path / "missing.yaml")) == {}
