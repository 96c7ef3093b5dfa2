"""Tests for sharelens config loader."""

from __future__ import annotations

import stat
import warnings
from pathlib import Path

import pytest
import yaml

from sharelens.config import (
    ConfigError,
    SharelensConfig,
    ensure_global_config,
    load_config,
    write_project_config,
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for var in (
        "SHARELENS_EMBEDDING_MODEL",
        "SHARELENS_REASONING_MODEL",
        "SHARELENS_SHARE_ROOT",
        "SHARELENS_ALERT_RECIPIENTS",
    ):
        monkeypatch.delenv(var, raising=False)


def _write_yaml(path: Path, data: dict) -> None:
    path.write_text(yaml.dump(data), encoding="utf-8")


def _load(tmp_path: Path, global_cfg: Path | None = None) -> SharelensConfig:
    return load_config(
        project_dir=tmp_path,
        global_config_path=global_cfg or tmp_path / "nonexistent" / "config.yaml",
    )


# ---------------------------------------------------------------------------
# Defaults: no config files present
# ---------------------------------------------------------------------------


def test_load_config_defaults_no_files(tmp_path: Path) -> None:
    cfg = _load(tmp_path)

    assert cfg.embedding.model == "ollama/nomic-embed-text"
    assert cfg.reasoning.model == "ollama_chat/llama3.1"
    assert cfg.reasoning.max_steps == 15
    assert cfg.chunking.chunk_size == 500
    assert cfg.chunking.overlap == 0
    assert cfg.retrieval.top_k == 5
    assert cfg.retrieval.alpha == 0.6
    assert cfg.storage.insert_batch_size == 100
    assert cfg.share.root == "/mnt/windows-share"
    assert cfg.share.documents_dir == "documents"
    assert cfg.share.file_pattern == "*.txt"
    assert cfg.security.log_directory == "logs"
    assert cfg.security.recipients == []
    assert cfg.security.alert_threshold == "medium"
    assert cfg.notify.smtp_host is None
    assert cfg.workflows.ingest_timeout == 600
    assert cfg.workflows.scan_timeout == 300


# ---------------------------------------------------------------------------
# Layering
# ---------------------------------------------------------------------------


def test_load_config_global_overrides_defaults(tmp_path: Path) -> None:
    global_cfg = tmp_path / "config.yaml"
    _write_yaml(global_cfg, {"embedding": {"model": "hosted_vllm/bge-small"}})

    cfg = _load(tmp_path, global_cfg)
    assert cfg.embedding.model == "hosted_vllm/bge-small"
    assert cfg.reasoning.model == "ollama_chat/llama3.1"


def test_load_config_global_empty_file(tmp_path: Path) -> None:
    global_cfg = tmp_path / "config.yaml"
    global_cfg.write_text("", encoding="utf-8")
    assert _load(tmp_path, global_cfg).embedding.model == "ollama/nomic-embed-text"


def test_load_config_project_overrides_global(tmp_path: Path) -> None:
    global_cfg = tmp_path / "config.yaml"
    _write_yaml(global_cfg, {"retrieval": {"top_k": 8, "alpha": 0.3}})
    _write_yaml(tmp_path / "sharelens.yaml", {"retrieval": {"alpha": 0.9}})

    cfg = _load(tmp_path, global_cfg)
    assert cfg.retrieval.alpha == 0.9
    assert cfg.retrieval.top_k == 8


def test_load_config_sections(tmp_path: Path) -> None:
    _write_yaml(
        tmp_path / "sharelens.yaml",
        {
            "embedding": {"model": "ollama/mxbai", "api_base": "http://gpu:11434", "dimensions": 1024},
            "chunking": {"chunk_size": 200, "overlap": 20},
            "share": {"root": "/srv/share", "documents_dir": "docs", "file_pattern": "*.md"},
            "security": {"recipients": "a@x.com, b@x.com", "alert_threshold": "HIGH"},
            "notify": {"smtp_host": "mail.local", "smtp_port": 587, "use_tls": True},
            "workflows": {"ingest_timeout": 60, "scan_timeout": 30},
            "storage": {"insert_batch_size": 50},
        },
    )
    cfg = _load(tmp_path)
    assert cfg.embedding.api_base == "http://gpu:11434"
    assert cfg.embedding.dimensions == 1024
    assert cfg.chunking.overlap == 20
    assert cfg.share.root == "/srv/share"
    assert cfg.share.file_pattern == "*.md"
    assert cfg.security.recipients == ["a@x.com", "b@x.com"]
    assert cfg.security.alert_threshold == "high"
    assert cfg.notify.smtp_port == 587
    assert cfg.notify.use_tls is True
    assert cfg.workflows.scan_timeout == 30
    assert cfg.storage.insert_batch_size == 50


def test_provider_configs(tmp_path: Path) -> None:
    _write_yaml(
        tmp_path / "sharelens.yaml",
        {
            "embedding": {"model": "ollama/mxbai", "dimensions": 1024, "num_retries": 4},
            "reasoning": {"model": "ollama_chat/qwen2.5", "api_base": "http://gpu:11434", "max_steps": 8},
        },
    )
    cfg = _load(tmp_path)
    emb = cfg.embedding_provider()
    assert (emb.model, emb.dimensions, emb.num_retries) == ("ollama/mxbai", 1024, 4)
    rsn = cfg.reasoning_provider()
    assert (rsn.model, rsn.api_base, rsn.max_steps) == ("ollama_chat/qwen2.5", "http://gpu:11434", 8)


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


@pytest.mark.parametrize(
    "data",
    [
        {"retrieval": {"alpha": 1.5}},
        {"retrieval": {"alpha": -0.1}},
        {"retrieval": {"top_k": 0}},
        {"chunking": {"chunk_size": 0}},
        {"chunking": {"chunk_size": 10, "overlap": 10}},
        {"storage": {"insert_batch_size": 0}},
        {"security": {"alert_threshold": "urgent"}},
        {"reasoning": {"max_steps": 0}},
        {"workflows": {"scan_timeout": 0}},
        {"embedding": {"dimensions": -3}},
        {"retrieval": {"top_k": "many"}},
    ],
)
def test_invalid_values_raise_config_error(tmp_path: Path, data: dict) -> None:
    _write_yaml(tmp_path / "sharelens.yaml", data)
    with pytest.raises(ConfigError):
        _load(tmp_path)


@pytest.mark.parametrize(
    "bad_key",
    ["api_key", "apikey", "OPENAI_API_KEY", "secret", "password", "token", "smtp_password"],
)
def test_global_config_rejects_credential_fields(tmp_path: Path, bad_key: str) -> None:
    global_cfg = tmp_path / "config.yaml"
    global_cfg.write_text(f"{bad_key}: sk-abc123\n", encoding="utf-8")

    with pytest.raises(ConfigError, match="forbidden key"):
        _load(tmp_path, global_cfg)


def test_global_config_rejects_nested_credential(tmp_path: Path) -> None:
    global_cfg = tmp_path / "config.yaml"
    _write_yaml(global_cfg, {"notify": {"password": "hunter2"}})

    with pytest.raises(ConfigError, match="forbidden key"):
        _load(tmp_path, global_cfg)


def test_unknown_top_level_key_warns(tmp_path: Path) -> None:
    _write_yaml(tmp_path / "sharelens.yaml", {"unknown_section": {"foo": "bar"}})

    with warnings.catch_warnings(record=True) as caught:
        warnings.simplefilter("always")
        cfg = _load(tmp_path)

    assert any("unknown_section" in str(w.message) for w in caught)
    assert cfg.embedding.model == "ollama/nomic-embed-text"


# ---------------------------------------------------------------------------
# Environment variable overrides
# ---------------------------------------------------------------------------


def test_env_var_overrides(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    _write_yaml(tmp_path / "sharelens.yaml", {"embedding": {"model": "ollama/from-file"}})
    monkeypatch.setenv("SHARELENS_EMBEDDING_MODEL", "ollama/from-env")
    monkeypatch.setenv("SHARELENS_REASONING_MODEL", "ollama_chat/env")
    monkeypatch.setenv("SHARELENS_SHARE_ROOT", "/mnt/other")
    monkeypatch.setenv("SHARELENS_ALERT_RECIPIENTS", "soc@example.com,noc@example.com")

    cfg = _load(tmp_path)
    assert cfg.embedding.model == "ollama/from-env"
    assert cfg.reasoning.model == "ollama_chat/env"
    assert cfg.share.root == "/mnt/other"
    assert cfg.security.recipients == ["soc@example.com", "noc@example.com"]


def test_empty_env_var_does_not_override(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("SHARELENS_EMBEDDING_MODEL", "")
    assert _load(tmp_path).embedding.model == "ollama/nomic-embed-text"


# ---------------------------------------------------------------------------
# ensure_global_config / write_project_config
# ---------------------------------------------------------------------------


def test_ensure_global_config_creates_file(tmp_path: Path) -> None:
    target = tmp_path / ".sharelens" / "config.yaml"
    result = ensure_global_config(global_config_path=target)

    assert result == target
    parsed = yaml.safe_load(target.read_text(encoding="utf-8"))
    assert parsed["embedding"]["model"] == "ollama/nomic-embed-text"
    assert parsed["reasoning"]["model"] == "ollama_chat/llama3.1"


def test_ensure_global_config_file_mode(tmp_path: Path) -> None:
    target = tmp_path / ".sharelens" / "config.yaml"
    ensure_global_config(global_config_path=target)
    assert stat.S_IMODE(target.stat().st_mode) == 0o600


def test_ensure_global_config_idempotent(tmp_path: Path) -> None:
    target = tmp_path / ".sharelens" / "config.yaml"
    ensure_global_config(global_config_path=target)
    target.write_text("embedding:\n  model: ollama/custom\n", encoding="utf-8")

    ensure_global_config(global_config_path=target)
    assert "ollama/custom" in target.read_text(encoding="utf-8")


def test_generated_global_config_loads(tmp_path: Path) -> None:
    target = ensure_global_config(global_config_path=tmp_path / ".sharelens" / "config.yaml")
    assert _load(tmp_path, target).embedding.model == "ollama/nomic-embed-text"


def test_write_project_config_round_trips(tmp_path: Path) -> None:
    cfg = SharelensConfig()
    cfg.share.root = "/srv/share"
    write_project_config(tmp_path, cfg)
    assert _load(tmp_path).share.root == "/srv/share"


def test_write_project_config_keeps_existing(tmp_path: Path) -> None:
    existing = tmp_path / "sharelens.yaml"
    existing.write_text("share:\n  root: /keep\n", encoding="utf-8")
    write_project_config(tmp_path)
    assert _load(tmp_path).share.root == "/keep"


def test_config_does_not_execute_yaml_load(tmp_path: Path) -> None:
    global_cfg = tmp_path / "config.yaml"
    global_cfg.write_text("!!python/object/apply:os.system ['echo pwned']\n", encoding="utf-8")

    with pytest.raises(yaml.YAMLError):
        _load(tmp_path, global_cfg)
