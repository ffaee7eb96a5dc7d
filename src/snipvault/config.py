"""snipvault configuration loader.

Priority (high → low):
  1. CLI flags           (handled at call site — not in this module)
  2. Environment variables  (SNIPVAULT_REDIS_URL, SNIPVAULT_CHUNK_SIZE)
  3. Per-project snipvault.yaml  (next to the database)
  4. Global ~/.snipvault/config.yaml
  5. Hardcoded defaults

Key material never lives in a config file: the encryption key is read from
SNIPVAULT_ENCRYPTION_KEY only, and key-like fields in either YAML layer are
rejected. All YAML reads use yaml.safe_load() — never yaml.load().
"""

from __future__ import annotations

import base64
import binascii
import hashlib
import os
import re
import secrets
import warnings
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

_GLOBAL_CONFIG_DIR: Path = Path.home() / ".snipvault"
_GLOBAL_CONFIG_PATH: Path = _GLOBAL_CONFIG_DIR / "config.yaml"
_PROJECT_CONFIG_NAME: str = "snipvault.yaml"

ENCRYPTION_KEY_ENV: str = "SNIPVAULT_ENCRYPTION_KEY"

# Fields that look like key material; forbidden in every config layer.
# Does NOT match legitimate keys like key_prefix, key_suffix, max_entries.
_SECRET_KEY_RE: re.Pattern[str] = re.compile(
    r"^(?:encryption_|master_|aes_)?key$"
    r"|api[_\-]?(?:key|secret)"
    r"|_token$"
    r"|^token$"
    r"|_secret$"
    r"|^secret$"
    r"|passw(?:ord|d)"
    r"|passphrase"
    r"|credential",
    re.IGNORECASE,
)

_KNOWN_SECTIONS: frozenset[str] = frozenset(["storage", "recency", "search"])
_RECENCY_BACKENDS: frozenset[str] = frozenset(["memory", "redis"])


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class ConfigError(ValueError):
    """Raised when a config file contains an invalid or forbidden value."""


# ---------------------------------------------------------------------------
# Data model
# ---------------------------------------------------------------------------


@dataclass
class StorageCfg:
    """Chunk pipeline and size limits (snipvault.yaml: storage:).

    Attributes:
        chunk_size_bytes: Maximum plaintext bytes per chunk.
        max_content_bytes: Largest snippet accepted; larger input is rejected
            before the chunker runs.
        max_words: Word limit for textual content (0 disables the check).
        max_snippets_per_owner: Live snippets allowed per owner (0 disables).
        source_ref_max_length: Longest accepted source reference.
    """

    chunk_size_bytes: int = 65_536
    max_content_bytes: int = 20 * 1024 * 1024
    max_words: int = 10_000
    max_snippets_per_owner: int = 1_000
    source_ref_max_length: int = 2_048


@dataclass
class RecencyCfg:
    """Recency index configuration (snipvault.yaml: recency:)."""

    max_entries: int = 50
    backend: str = "memory"  # memory | redis
    redis_url: str | None = None
    key_prefix: str = "user:"
    key_suffix: str = ":snippets:queue"


@dataclass
class SearchCfg:
    """Search configuration (snipvault.yaml: search:).

    ``max_snippets = 0`` scans every live snippet of the owner.
    """

    max_snippets: int = 0
    workers: int = 10


@dataclass
class SnipvaultConfig:
    """Root configuration object, built by load_config() from merged YAML layers."""

    storage: StorageCfg = field(default_factory=StorageCfg)
    recency: RecencyCfg = field(default_factory=RecencyCfg)
    search: SearchCfg = field(default_factory=SearchCfg)


# ---------------------------------------------------------------------------
# Validation helpers
# ---------------------------------------------------------------------------


def _check_no_secrets(data: dict[str, Any], source: Path) -> None:
    """Raise ConfigError if *data* contains any key-material-like field."""

    def _scan(obj: Any, path: str) -> None:
        if isinstance(obj, dict):
            for k, v in obj.items():
                full = f"{path}.{k}" if path else k
                if _SECRET_KEY_RE.search(str(k)):
                    raise ConfigError(
                        f"Config '{source}' contains a forbidden key '{full}'.\n"
                        f"  Key material must be set via environment variables, not config files.\n"
                        f"  Remove '{full}' from {source.name} and use:\n"
                        f"    export {ENCRYPTION_KEY_ENV}=<value>"
                    )
                _scan(v, full)

    _scan(data, "")


def _warn_unknown_keys(data: dict[str, Any], source: Path) -> None:
    """Emit a UserWarning for unrecognised top-level keys."""
    for key in data:
        if key not in _KNOWN_SECTIONS:
            warnings.warn(
                f"Unknown config key '{key}' in '{source}' — ignored.",
                UserWarning,
                stacklevel=4,
            )


def _validate(cfg: SnipvaultConfig) -> None:
    if cfg.storage.chunk_size_bytes < 1:
        raise ConfigError(
            f"storage.chunk_size_bytes must be >= 1, got {cfg.storage.chunk_size_bytes}"
        )
    if cfg.storage.max_content_bytes < 1:
        raise ConfigError(
            f"storage.max_content_bytes must be >= 1, got {cfg.storage.max_content_bytes}"
        )
    if cfg.recency.max_entries < 1:
        raise ConfigError(
            f"recency.max_entries must be >= 1, got {cfg.recency.max_entries}"
        )
    if cfg.recency.backend not in _RECENCY_BACKENDS:
        raise ConfigError(
            f"recency.backend must be one of {sorted(_RECENCY_BACKENDS)}, "
            f"got '{cfg.recency.backend}'"
        )
    if cfg.recency.backend == "redis" and not cfg.recency.redis_url:
        raise ConfigError(
            "recency.backend is 'redis' but no redis_url is configured.\n"
            "  Set recency.redis_url or export SNIPVAULT_REDIS_URL=redis://..."
        )
    if cfg.search.workers < 1:
        raise ConfigError(f"search.workers must be >= 1, got {cfg.search.workers}")


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


def _cfg_from_dict(data: dict[str, Any]) -> SnipvaultConfig:
    """Build a *SnipvaultConfig* from a merged raw YAML dict."""
    cfg = SnipvaultConfig()

    if "storage" in data:
        s = data["storage"] or {}
        cfg.storage = StorageCfg(
            chunk_size_bytes=int(s.get("chunk_size_bytes", cfg.storage.chunk_size_bytes)),
            max_content_bytes=int(s.get("max_content_bytes", cfg.storage.max_content_bytes)),
            max_words=int(s.get("max_words", cfg.storage.max_words)),
            max_snippets_per_owner=int(
                s.get("max_snippets_per_owner", cfg.storage.max_snippets_per_owner)
            ),
            source_ref_max_length=int(
                s.get("source_ref_max_length", cfg.storage.source_ref_max_length)
            ),
        )

    if "recency" in data:
        r = data["recency"] or {}
        cfg.recency = RecencyCfg(
            max_entries=int(r.get("max_entries", cfg.recency.max_entries)),
            backend=str(r.get("backend", cfg.recency.backend)),
            redis_url=r.get("redis_url") or cfg.recency.redis_url,
            key_prefix=str(r.get("key_prefix", cfg.recency.key_prefix)),
            key_suffix=str(r.get("key_suffix", cfg.recency.key_suffix)),
        )

    if "search" in data:
        q = data["search"] or {}
        cfg.search = SearchCfg(
            max_snippets=int(q.get("max_snippets", cfg.search.max_snippets)),
            workers=int(q.get("workers", cfg.search.workers)),
        )

    return cfg


def _apply_env_overrides(cfg: SnipvaultConfig) -> SnipvaultConfig:
    """Apply SNIPVAULT_* environment variable overrides (layer 2)."""
    if url := os.environ.get("SNIPVAULT_REDIS_URL"):
        cfg.recency.redis_url = url
    if size := os.environ.get("SNIPVAULT_CHUNK_SIZE"):
        try:
            cfg.storage.chunk_size_bytes = int(size)
        except ValueError as exc:
            raise ConfigError(
                f"SNIPVAULT_CHUNK_SIZE must be an integer, got '{size}'"
            ) from exc
    return cfg


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def load_config(
    project_dir: Path | None = None,
    *,
    global_config_path: Path | None = None,
) -> SnipvaultConfig:
    """Load and return a merged *SnipvaultConfig*.

    Applies layers in order: global → per-project → env vars.
    CLI flag overrides must be applied by the caller after this function.

    Args:
        project_dir: Directory to search for *snipvault.yaml*. Defaults to CWD.
        global_config_path: Override the global config path (for testing).

    Returns:
        Fully merged and validated *SnipvaultConfig*.

    Raises:
        ConfigError: If a config layer contains key material or an invalid value.
    """
    global_path = global_config_path if global_config_path is not None else _GLOBAL_CONFIG_PATH
    search_dir = project_dir if project_dir is not None else Path.cwd()

    merged: dict[str, Any] = {}

    # Layer 1: global config
    if global_path.exists():
        raw_global = yaml.safe_load(global_path.read_text(encoding="utf-8")) or {}
        _check_no_secrets(raw_global, global_path)
        _warn_unknown_keys(raw_global, global_path)
        merged = _deep_merge(merged, raw_global)

    # Layer 2: per-project config
    project_cfg_path = search_dir / _PROJECT_CONFIG_NAME
    if project_cfg_path.exists():
        raw_project = yaml.safe_load(project_cfg_path.read_text(encoding="utf-8")) or {}
        _check_no_secrets(raw_project, project_cfg_path)
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


def decode_key(raw: str) -> bytes:
    """Turn the configured key string into 32 bytes of AES-256 key material.

    64 hex characters and 44-character base64 strings are decoded as-is;
    anything else is treated as a passphrase and stretched with SHA-256.
    """
    raw = raw.strip()
    if not raw:
        raise ConfigError(f"{ENCRYPTION_KEY_ENV} is empty")

    key_bytes: bytes | None = None
    if len(raw) == 64:
        try:
            key_bytes = bytes.fromhex(raw)
        except ValueError:
            key_bytes = None
    elif len(raw) == 44:
        try:
            key_bytes = base64.b64decode(raw, validate=True)
        except binascii.Error:
            key_bytes = None

    if key_bytes is None:
        key_bytes = hashlib.sha256(raw.encode("utf-8")).digest()

    if len(key_bytes) != 32:
        raise ConfigError(f"{ENCRYPTION_KEY_ENV} must decode to 32 bytes for AES-256")
    return key_bytes


def load_encryption_key(environ: dict[str, str] | None = None) -> bytes:
    """Read and decode the process-wide encryption key from the environment.

    Raises:
        ConfigError: If SNIPVAULT_ENCRYPTION_KEY is not set.
    """
    env = os.environ if environ is None else environ
    raw = env.get(ENCRYPTION_KEY_ENV)
    if not raw:
        raise ConfigError(
            f"No encryption key configured.\n"
            f"  Set:  export {ENCRYPTION_KEY_ENV}=$(snipvault keygen)"
        )
    return decode_key(raw)


def generate_key() -> str:
    """Return a new random key as a 64-character hex string (32 bytes)."""
    return secrets.token_hex(32)


def ensure_global_config(
    global_config_path: Path | None = None,
) -> Path:
    """Create ``~/.snipvault/config.yaml`` with defaults if it does not exist.

    Creates parent directory with mode 0o700 and the config file with
    mode 0o600 (owner-readable only).

    Args:
        global_config_path: Override path (for testing).

    Returns:
        Path to the global config file.
    """
    target = global_config_path if global_config_path is not None else _GLOBAL_CONFIG_PATH
    target.parent.mkdir(mode=0o700, parents=True, exist_ok=True)

    if not target.exists():
        content = (
            "# snipvault global configuration.\n"
            "# NEVER store the encryption key here — use the environment:\n"
            f"#   export {ENCRYPTION_KEY_ENV}=$(snipvault keygen)\n"
            "\n"
            "storage:\n"
            "  chunk_size_bytes: 65536\n"
            "  max_content_bytes: 20971520\n"
            "\n"
            "recency:\n"
            "  max_entries: 50\n"
            "  backend: memory\n"
        )
        target.write_text(content, encoding="utf-8")
        target.chmod(0o600)

    return target
