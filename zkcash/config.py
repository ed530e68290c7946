"""
zkcash configuration loader.

Layered config with clear precedence:
    1) Explicit overrides passed to `load()` (highest)
    2) Environment variables (ZKCASH_*)
    3) Config file (TOML or JSON)
    4) Built-in defaults (lowest)

Keys (file, overrides and env):

    default_depth       ZKCASH_DEFAULT_DEPTH        tree depth used by `Initialize` tooling (1..32)
    root_history_size   ZKCASH_ROOT_HISTORY_SIZE    accepted-root window (>= 1)
    vk_path             ZKCASH_VK_PATH              snarkjs verification_key.json
    program_id          ZKCASH_PROGRAM_ID           32-byte hex, seeds the pool custody address
    log_level           ZKCASH_LOG_LEVEL
    log_format          ZKCASH_LOG_FORMAT           "json" | "text" | "" (auto)

A TOML/JSON file may hold the keys at top level or under a `[pool]` table.

`root_history_size` trades liveness for exposure: a larger window lets
spenders prove against older roots, but keeps roots valid for longer.
"""

from __future__ import annotations

import json
import os
import re
import sys
import tomllib
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from .errors import InvalidConfig
from .merkle import DEFAULT_ROOT_HISTORY_SIZE, MAX_DEPTH, MIN_DEPTH

DEFAULT_DEPTH = 20
DEFAULT_PROGRAM_ID = "0x" + "00" * 32

_KEYS = ("default_depth", "root_history_size", "vk_path", "program_id", "log_level", "log_format")
_LOG_LEVELS = {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG", "NOTSET"}


def _expand(p: Union[str, Path]) -> Path:
    return Path(p).expanduser().resolve()


def _env_int(name: str, default: int) -> int:
    v = os.environ.get(name)
    if v is None or v == "":
        return default
    try:
        return int(v, 0)
    except ValueError as e:
        raise InvalidConfig(f"{name} must be int, got {v!r}", key=name) from e


@dataclass
class PoolConfig:
    default_depth: int = DEFAULT_DEPTH
    root_history_size: int = DEFAULT_ROOT_HISTORY_SIZE
    vk_path: Optional[Path] = None
    program_id: str = DEFAULT_PROGRAM_ID
    log_level: str = "INFO"
    log_format: str = ""

    @property
    def program_id_bytes(self) -> bytes:
        h = self.program_id.lower()
        return bytes.fromhex(h[2:] if h.startswith("0x") else h)

    def to_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        d["vk_path"] = str(self.vk_path) if self.vk_path else None
        return d


# ------------------------------
# File loader (TOML / JSON)
# ------------------------------


def _load_file(path: Path) -> Dict[str, Any]:
    if not path.exists():
        raise InvalidConfig(f"config file not found: {path}", path=str(path))
    suffix = path.suffix.lower()
    try:
        with path.open("rb") as f:
            if suffix in {".toml", ".tml"}:
                raw = tomllib.load(f)
            elif suffix == ".json":
                raw = json.load(f)
            else:
                raise InvalidConfig(f"unsupported config format: {suffix}. Use .toml or .json", path=str(path))
    except (tomllib.TOMLDecodeError, json.JSONDecodeError) as e:
        raise InvalidConfig(f"cannot parse {path}: {e}", path=str(path)) from e
    if not isinstance(raw, dict):
        raise InvalidConfig("config file must hold a table/object", path=str(path))
    section = raw.get("pool", raw)
    if not isinstance(section, dict):
        raise InvalidConfig("[pool] must be a table", path=str(path))
    # With a [pool] table, nothing else may sit at the top level.
    stray = set(raw) - {"pool"} if section is not raw else set()
    unknown = sorted((set(section) - set(_KEYS)) | stray)
    if unknown:
        raise InvalidConfig(f"unknown config keys: {', '.join(unknown)}", path=str(path))
    return {k: section[k] for k in _KEYS if k in section}


def _env_layer() -> Dict[str, Any]:
    out: Dict[str, Any] = {}
    if "ZKCASH_DEFAULT_DEPTH" in os.environ:
        out["default_depth"] = _env_int("ZKCASH_DEFAULT_DEPTH", DEFAULT_DEPTH)
    if "ZKCASH_ROOT_HISTORY_SIZE" in os.environ:
        out["root_history_size"] = _env_int("ZKCASH_ROOT_HISTORY_SIZE", DEFAULT_ROOT_HISTORY_SIZE)
    if os.environ.get("ZKCASH_VK_PATH"):
        out["vk_path"] = os.environ["ZKCASH_VK_PATH"]
    if "ZKCASH_PROGRAM_ID" in os.environ:
        out["program_id"] = os.environ["ZKCASH_PROGRAM_ID"].strip()
    if "ZKCASH_LOG_LEVEL" in os.environ:
        out["log_level"] = os.environ["ZKCASH_LOG_LEVEL"].strip()
    if "ZKCASH_LOG_FORMAT" in os.environ:
        out["log_format"] = os.environ["ZKCASH_LOG_FORMAT"].strip()
    return out


# ------------------------------
# Main loader
# ------------------------------


def load(config_file: Optional[Union[str, Path]] = None, **overrides: Any) -> PoolConfig:
    """
    Load the pool configuration.

    Precedence: overrides > env > file > defaults. Overrides whose value is
    None are ignored, so CLI options can be passed straight through.
    """
    base: Dict[str, Any] = asdict(PoolConfig())

    if config_file:
        base.update(_load_file(_expand(config_file)))

    base.update(_env_layer())

    unknown = sorted(set(overrides) - set(_KEYS))
    if unknown:
        raise InvalidConfig(f"unknown config keys: {', '.join(unknown)}")
    base.update({k: v for k, v in overrides.items() if v is not None})

    try:
        cfg = PoolConfig(
            default_depth=int(base["default_depth"]),
            root_history_size=int(base["root_history_size"]),
            vk_path=_expand(base["vk_path"]) if base["vk_path"] else None,
            program_id=str(base["program_id"]).strip(),
            log_level=str(base["log_level"]).strip().upper(),
            log_format=str(base["log_format"] or "").strip().lower(),
        )
    except (TypeError, ValueError) as e:
        raise InvalidConfig(f"invalid configuration value: {e}") from e

    _validate_config(cfg)
    return cfg


def _validate_config(cfg: PoolConfig) -> None:
    if not MIN_DEPTH <= cfg.default_depth <= MAX_DEPTH:
        raise InvalidConfig(
            f"default_depth must be in [{MIN_DEPTH}, {MAX_DEPTH}]", default_depth=cfg.default_depth
        )
    if cfg.root_history_size < 1:
        raise InvalidConfig("root_history_size must be >= 1", root_history_size=cfg.root_history_size)
    h = cfg.program_id.lower()
    if not re.fullmatch(r"(0x)?[0-9a-f]{64}", h):
        raise InvalidConfig(f"program_id must be 32-byte hex, got {cfg.program_id!r}")
    if cfg.log_level not in _LOG_LEVELS:
        raise InvalidConfig(f"unknown log_level {cfg.log_level!r}")
    if cfg.log_format not in ("", "json", "text"):
        raise InvalidConfig(f"log_format must be json or text, got {cfg.log_format!r}")
    if cfg.vk_path is not None and not cfg.vk_path.exists():
        # Only fatal once a verifier is built from it.
        print(f"[config] Warning: verification key not found at {cfg.vk_path}", file=sys.stderr)


def main(argv: Optional[List[str]] = None) -> int:
    """
    python -m zkcash.config [path/to/config.toml]   # print effective config as JSON
    """
    argv = sys.argv[1:] if argv is None else list(argv)
    path = argv[0] if argv else None
    try:
        cfg = load(path)
    except InvalidConfig as e:
        print(f"config error: {e}", file=sys.stderr)
        return 2
    print(json.dumps(cfg.to_dict(), indent=2, sort_keys=True))
    return 0


__all__ = ["DEFAULT_DEPTH", "DEFAULT_PROGRAM_ID", "PoolConfig", "load"]


if __name__ == "__main__":
    raise SystemExit(main())
