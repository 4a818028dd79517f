import json
import os
from pathlib import Path
from typing import Any

from scroll_paths.core.constants.zero_ex import (
    ZERO_EX_DEFAULT_API_VERSION,
    ZERO_EX_DEFAULT_BASE_URL,
)

_CONFIG_ENV_KEYS = ("SCROLL_PATHS_CONFIG_PATH", "SCROLL_PATHS_CONFIG")
_DEFAULT_CONFIG_FILENAME = "config.json"


def _find_project_root(start: Path) -> Path | None:
    cur = start.resolve()
    for parent in [cur, *cur.parents]:
        if (parent / "pyproject.toml").exists():
            return parent
    return None


def _project_root() -> Path | None:
    return _find_project_root(Path.cwd()) or _find_project_root(Path(__file__).parent)


def resolve_config_path(path: str | Path | None = None) -> Path:
    if path is not None:
        return Path(path).expanduser()

    env_path = next(
        (os.getenv(k, "").strip() for k in _CONFIG_ENV_KEYS if os.getenv(k)), ""
    )
    if env_path:
        p = Path(env_path).expanduser()
        if p.is_absolute():
            return p
        root = _project_root()
        return (root / p) if root else p

    root = _project_root()
    return (root / _DEFAULT_CONFIG_FILENAME) if root else Path(_DEFAULT_CONFIG_FILENAME)


def load_config_json(
    path: str | Path | None = None, *, require_exists: bool = False
) -> dict[str, Any]:
    cfg_path = resolve_config_path(path)
    if not cfg_path.exists():
        if require_exists:
            raise FileNotFoundError(f"Config file not found: {cfg_path}")
        return {}
    try:
        return json.loads(cfg_path.read_text())
    except json.JSONDecodeError:
        return {}


CONFIG: dict[str, Any] = load_config_json()


def set_config(config: dict[str, Any]) -> None:
    """Replace the global CONFIG dict in-place.

    This allows code that imported CONFIG at module import time to see updates.
    """
    CONFIG.clear()
    CONFIG.update(config)


def load_config(
    path: str | Path | None = None, *, require_exists: bool = False
) -> None:
    """Load config from disk into the global CONFIG dict."""
    set_config(load_config_json(path, require_exists=require_exists))


def set_rpc_urls(rpc_urls):
    if "strategy" not in CONFIG:
        CONFIG["strategy"] = {}
    CONFIG["strategy"]["rpc_urls"] = rpc_urls


def get_rpc_urls() -> dict[str, Any]:
    return CONFIG.get("strategy", {}).get("rpc_urls", {})


def get_zero_ex_api_key() -> str | None:
    system = CONFIG.get("system", {})
    api_key = system.get("zero_ex_api_key")
    if api_key:
        return str(api_key).strip()
    return os.environ.get("ZERO_EX_API_KEY")


def get_zero_ex_base_url() -> str:
    system = CONFIG.get("system", {})
    base_url = system.get("zero_ex_base_url")
    if base_url:
        return str(base_url).strip()
    return ZERO_EX_DEFAULT_BASE_URL


def get_zero_ex_api_version() -> str:
    system = CONFIG.get("system", {})
    version = system.get("zero_ex_api_version")
    if version:
        return str(version).strip()
    return ZERO_EX_DEFAULT_API_VERSION


def get_wallets() -> list[dict[str, Any]]:
    wallets = CONFIG.get("wallets", [])
    return wallets if isinstance(wallets, list) else []


def find_wallet_by_label(label: str) -> dict[str, Any] | None:
    want = str(label).strip().lower()
    for wallet in get_wallets():
        if str(wallet.get("label", "")).strip().lower() == want:
            return wallet
    return None
