"""sharelens configuration loader.

Priority (high → low):
  1. CLI flags           (handled at call site, not in this module)
  2. Environment variables  (SHARELENS_EMBEDDING_MODEL, SHARELENS_REASONING_MODEL,
                             SHARELENS_SHARE_ROOT, SHARELENS_ALERT_RECIPIENTS)
  3. Per-project sharelens.yaml
  4. Global ~/.sharelens/config.yaml  (defaults only, no credentials)
  5. Hardcoded defaults

Global config must never contain API keys or SMTP passwords; use environment
variables instead. All YAML reads use yaml.safe_load().
"""

from __future__ import annotations

import os
import re
import warnings
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from sharelens.analysis import SEVERITIES
from sharelens.collaborators.reasoning import ReasoningProviderConfig
from sharelens.ingest.embeddings import EmbeddingProviderConfig

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

_GLOBAL_CONFIG_DIR: Path = Path.home() / ".sharelens"
_GLOBAL_CONFIG_PATH: Path = _GLOBAL_CONFIG_DIR / "config.yaml"
_PROJECT_CONFIG_NAME: str = "sharelens.yaml"

# Matches api_key, api-key, *_token, token, *_secret, secret, password, credential(s).
# Does NOT match keys like max_tokens.
_API_KEY_RE: re.Pattern[str] = re.compile(
    r"api[_\-]?(?:key|secret)"
    r"|_token$"
    r"|^token$"
    r"|_secret$"
    r"|^secret$"
    r"|passw(?:ord|d)"
    r"|credential",
    re.IGNORECASE,
)

_KNOWN_SECTIONS: frozenset[str] = frozenset(
    [
        "embedding",
        "reasoning",
        "chunking",
        "retrieval",
        "storage",
        "share",
        "security",
        "notify",
        "workflows",
    ]
)


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class ConfigError(ValueError):
    """Raised when a config file contains an invalid or forbidden value."""


# ---------------------------------------------------------------------------
# Data model
# ---------------------------------------------------------------------------


@dataclass
class EmbeddingCfg:
    """Embedding model configuration (sharelens.yaml: embedding:)."""

    model: str = "ollama/nomic-embed-text"
    api_base: str | None = None
    dimensions: int | None = None
    num_retries: int = 2


@dataclass
class ReasoningCfg:
    """Tool-calling model used by security scans (sharelens.yaml: reasoning:)."""

    model: str = "ollama_chat/llama3.1"
    api_base: str | None = None
    max_steps: int = 15
    num_retries: int = 2


@dataclass
class ChunkingCfg:
    chunk_size: int = 500
    overlap: int = 0


@dataclass
class RetrievalCfg:
    top_k: int = 5
    alpha: float = 0.6


@dataclass
class StorageCfg:
    insert_batch_size: int = 100


@dataclass
class ShareCfg:
    """Mounted file share (sharelens.yaml: share:).

    Attributes:
        root: Mount point of the share. Mounting itself is out of scope.
        documents_dir: Default ingestion directory, relative to *root*.
        file_pattern: Default glob for ingestion.
    """

    root: str = "/mnt/windows-share"
    documents_dir: str = "documents"
    file_pattern: str = "*.txt"


@dataclass
class SecurityCfg:
    log_directory: str = "logs"
    recipients: list[str] = field(default_factory=list)
    alert_threshold: str = "medium"


@dataclass
class NotifyCfg:
    """SMTP relay for alerts. Credentials come from SHARELENS_SMTP_USER / _PASSWORD."""

    smtp_host: str | None = None
    smtp_port: int = 25
    sender: str = "Security Monitor <security@localhost>"
    use_tls: bool = False


@dataclass
class WorkflowsCfg:
    """Wall-clock budgets in seconds per workflow run."""

    ingest_timeout: float = 600.0
    scan_timeout: float = 300.0


@dataclass
class SharelensConfig:
    """Root configuration object, built by load_config() from merged YAML layers."""

    embedding: EmbeddingCfg = field(default_factory=EmbeddingCfg)
    reasoning: ReasoningCfg = field(default_factory=ReasoningCfg)
    chunking: ChunkingCfg = field(default_factory=ChunkingCfg)
    retrieval: RetrievalCfg = field(default_factory=RetrievalCfg)
    storage: StorageCfg = field(default_factory=StorageCfg)
    share: ShareCfg = field(default_factory=ShareCfg)
    security: SecurityCfg = field(default_factory=SecurityCfg)
    notify: NotifyCfg = field(default_factory=NotifyCfg)
    workflows: WorkflowsCfg = field(default_factory=WorkflowsCfg)

    def embedding_provider(self) -> EmbeddingProviderConfig:
        return EmbeddingProviderConfig(
            model=self.embedding.model,
            api_base=self.embedding.api_base,
            dimensions=self.embedding.dimensions,
            num_retries=self.embedding.num_retries,
        )

    def reasoning_provider(self) -> ReasoningProviderConfig:
        return ReasoningProviderConfig(
            model=self.reasoning.model,
            api_base=self.reasoning.api_base,
            max_steps=self.reasoning.max_steps,
            num_retries=self.reasoning.num_retries,
        )


# ---------------------------------------------------------------------------
# Validation helpers
# ---------------------------------------------------------------------------


def _check_no_api_keys(data: dict[str, Any], source: Path) -> None:
    """Raise ConfigError if *data* contains any API-key-like key names."""

    def _scan(obj: Any, path: str) -> None:
        if isinstance(obj, dict):
            for k, v in obj.items():
                full = f"{path}.{k}" if path else k
                if _API_KEY_RE.search(str(k)):
                    raise ConfigError(
                        f"Global config '{source}' contains a forbidden key '{full}'.\n"
                        f"  Credentials must be set via environment variables, not config files.\n"
                        f"  Remove '{full}' from {source.name} and use:\n"
                        f"    export {str(k).upper().replace('-', '_')}=<value>"
                    )
                _scan(v, full)

    _scan(data, "")


def _warn_unknown_keys(data: dict[str, Any], source: Path) -> None:
    """Emit a UserWarning for unrecognised top-level keys."""
    for key in data:
        if key not in _KNOWN_SECTIONS:
            warnings.warn(
                f"Unknown config key '{key}' in '{source}' (ignored).",
                UserWarning,
                stacklevel=4,
            )


def _validate(cfg: SharelensConfig) -> None:
    """Raise ConfigError for values the workflows would reject later."""
    if cfg.chunking.chunk_size <= 0:
        raise ConfigError(f"chunking.chunk_size must be > 0, got {cfg.chunking.chunk_size}")
    if not 0 <= cfg.chunking.overlap < cfg.chunking.chunk_size:
        raise ConfigError(
            f"chunking.overlap must be in [0, chunk_size), got {cfg.chunking.overlap}"
        )
    if cfg.retrieval.top_k <= 0:
        raise ConfigError(f"retrieval.top_k must be > 0, got {cfg.retrieval.top_k}")
    if not 0.0 <= cfg.retrieval.alpha <= 1.0:
        raise ConfigError(f"retrieval.alpha must be in [0, 1], got {cfg.retrieval.alpha}")
    if cfg.storage.insert_batch_size <= 0:
        raise ConfigError(
            f"storage.insert_batch_size must be > 0, got {cfg.storage.insert_batch_size}"
        )
    if cfg.embedding.dimensions is not None and cfg.embedding.dimensions <= 0:
        raise ConfigError(f"embedding.dimensions must be > 0, got {cfg.embedding.dimensions}")
    if cfg.reasoning.max_steps <= 0:
        raise ConfigError(f"reasoning.max_steps must be > 0, got {cfg.reasoning.max_steps}")
    if cfg.security.alert_threshold not in SEVERITIES:
        raise ConfigError(
            f"security.alert_threshold must be one of {', '.join(SEVERITIES)}, "
            f"got '{cfg.security.alert_threshold}'"
        )
    for name in ("ingest_timeout", "scan_timeout"):
        if getattr(cfg.workflows, name) <= 0:
            raise ConfigError(f"workflows.{name} must be > 0")


# ---------------------------------------------------------------------------
# Merge + build
# ---------------------------------------------------------------------------


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Return a new dict that is *base* deep-merged with *override*."""
    result = dict(base)
    for k, v in override.items():
        if k in result and isinstance(result[k], dict) and isinstance(v, dict):
            result[k] = _deep_merge(result[k], v)
        else:
            result[k] = v
    return result


def _split_recipients(value: Any) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        value = value.split(",")
    return [str(v).strip() for v in value if str(v).strip()]


def _optional_int(value: Any) -> int | None:
    return None if value is None else int(value)


def _cfg_from_dict(data: dict[str, Any]) -> SharelensConfig:
    """Build a *SharelensConfig* from a merged raw YAML dict."""
    cfg = SharelensConfig()

    if "embedding" in data:
        e = data["embedding"] or {}
        cfg.embedding = EmbeddingCfg(
            model=str(e.get("model", cfg.embedding.model)),
            api_base=e.get("api_base") or cfg.embedding.api_base,
            dimensions=_optional_int(e.get("dimensions", cfg.embedding.dimensions)),
            num_retries=int(e.get("num_retries", cfg.embedding.num_retries)),
        )

    if "reasoning" in data:
        r = data["reasoning"] or {}
        cfg.reasoning = ReasoningCfg(
            model=str(r.get("model", cfg.reasoning.model)),
            api_base=r.get("api_base") or cfg.reasoning.api_base,
            max_steps=int(r.get("max_steps", cfg.reasoning.max_steps)),
            num_retries=int(r.get("num_retries", cfg.reasoning.num_retries)),
        )

    if "chunking" in data:
        c = data["chunking"] or {}
        cfg.chunking = ChunkingCfg(
            chunk_size=int(c.get("chunk_size", cfg.chunking.chunk_size)),
            overlap=int(c.get("overlap", cfg.chunking.overlap)),
        )

    if "retrieval" in data:
        rt = data["retrieval"] or {}
        cfg.retrieval = RetrievalCfg(
            top_k=int(rt.get("top_k", cfg.retrieval.top_k)),
            alpha=float(rt.get("alpha", cfg.retrieval.alpha)),
        )

    if "storage" in data:
        s = data["storage"] or {}
        cfg.storage = StorageCfg(
            insert_batch_size=int(s.get("insert_batch_size", cfg.storage.insert_batch_size)),
        )

    if "share" in data:
        sh = data["share"] or {}
        cfg.share = ShareCfg(
            root=str(sh.get("root", cfg.share.root)),
            documents_dir=str(sh.get("documents_dir", cfg.share.documents_dir)),
            file_pattern=str(sh.get("file_pattern", cfg.share.file_pattern)),
        )

    if "security" in data:
        sec = data["security"] or {}
        cfg.security = SecurityCfg(
            log_directory=str(sec.get("log_directory", cfg.security.log_directory)),
            recipients=_split_recipients(sec.get("recipients")),
            alert_threshold=str(sec.get("alert_threshold", cfg.security.alert_threshold)).lower(),
        )

    if "notify" in data:
        n = data["notify"] or {}
        cfg.notify = NotifyCfg(
            smtp_host=n.get("smtp_host") or cfg.notify.smtp_host,
            smtp_port=int(n.get("smtp_port", cfg.notify.smtp_port)),
            sender=str(n.get("sender", cfg.notify.sender)),
            use_tls=bool(n.get("use_tls", cfg.notify.use_tls)),
        )

    if "workflows" in data:
        w = data["workflows"] or {}
        cfg.workflows = WorkflowsCfg(
            ingest_timeout=float(w.get("ingest_timeout", cfg.workflows.ingest_timeout)),
            scan_timeout=float(w.get("scan_timeout", cfg.workflows.scan_timeout)),
        )

    return cfg


def _apply_env_overrides(cfg: SharelensConfig) -> SharelensConfig:
    """Apply SHARELENS_* environment variable overrides (layer 2)."""
    if model := os.environ.get("SHARELENS_EMBEDDING_MODEL"):
        cfg.embedding.model = model
    if model := os.environ.get("SHARELENS_REASONING_MODEL"):
        cfg.reasoning.model = model
    if root := os.environ.get("SHARELENS_SHARE_ROOT"):
        cfg.share.root = root
    if recipients := os.environ.get("SHARELENS_ALERT_RECIPIENTS"):
        cfg.security.recipients = _split_recipients(recipients)
    return cfg


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def load_config(
    project_dir: Path | None = None,
    *,
    global_config_path: Path | None = None,
) -> SharelensConfig:
    """Load and return a merged *SharelensConfig*.

    Applies layers in order: global → per-project → env vars.
    CLI flag overrides must be applied by the caller after this function.

    Args:
        project_dir: Directory to search for *sharelens.yaml*. Defaults to CWD.
        global_config_path: Override the global config path (for testing).

    Raises:
        ConfigError: If global config contains credential-like fields, or a
            value is out of range (alpha, sizes, severity, timeouts).
    """
    global_path = global_config_path if global_config_path is not None else _GLOBAL_CONFIG_PATH
    search_dir = project_dir if project_dir is not None else Path.cwd()

    merged: dict[str, Any] = {}

    # Layer 1: global config
    if global_path.exists():
        raw_global = yaml.safe_load(global_path.read_text(encoding="utf-8")) or {}
        _check_no_api_keys(raw_global, global_path)
        _warn_unknown_keys(raw_global, global_path)
        merged = _deep_merge(merged, raw_global)

    # Layer 2: per-project config
    project_cfg_path = search_dir / _PROJECT_CONFIG_NAME
    if project_cfg_path.exists():
        raw_project = yaml.safe_load(project_cfg_path.read_text(encoding="utf-8")) or {}
        _warn_unknown_keys(raw_project, project_cfg_path)
        merged = _deep_merge(merged, raw_project)

    try:
        cfg = _cfg_from_dict(merged)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"Invalid config value: {exc}") from exc

    # Layer 3: env var overrides
    cfg = _apply_env_overrides(cfg)

    _validate(cfg)
    return cfg


def ensure_global_config(
    global_config_path: Path | None = None,
) -> Path:
    """Create ``~/.sharelens/config.yaml`` with defaults if it does not exist.

    Creates parent directory with mode 0o700 and the config file with
    mode 0o600 (owner-readable only).
    """
    target = global_config_path if global_config_path is not None else _GLOBAL_CONFIG_PATH
    target.parent.mkdir(mode=0o700, parents=True, exist_ok=True)

    if not target.exists():
        content = (
            "# sharelens global configuration: defaults only.\n"
            "# NEVER store API keys or SMTP passwords here; use environment variables:\n"
            "#   export OPENAI_API_KEY=sk-...\n"
            "#   export SHARELENS_SMTP_PASSWORD=...\n"
            "\n"
            "embedding:\n"
            "  model: ollama/nomic-embed-text\n"
            "\n"
            "reasoning:\n"
            "  model: ollama_chat/llama3.1\n"
        )
        target.write_text(content, encoding="utf-8")
        target.chmod(0o600)

    return target


def write_project_config(project_dir: Path, cfg: SharelensConfig | None = None) -> Path:
    """Write a starter ``sharelens.yaml`` into *project_dir* unless one exists."""
    cfg = cfg or SharelensConfig()
    target = project_dir / _PROJECT_CONFIG_NAME
    if target.exists():
        return target
    data = {
        "share": {
            "root": cfg.share.root,
            "documents_dir": cfg.share.documents_dir,
            "file_pattern": cfg.share.file_pattern,
        },
        "chunking": {"chunk_size": cfg.chunking.chunk_size, "overlap": cfg.chunking.overlap},
        "retrieval": {"top_k": cfg.retrieval.top_k, "alpha": cfg.retrieval.alpha},
        "security": {
            "log_directory": cfg.security.log_directory,
            "alert_threshold": cfg.security.alert_threshold,
            "recipients": list(cfg.security.recipients),
        },
    }
    target.write_text(yaml.safe_dump(data, sort_keys=False), encoding="utf-8")
    return target
