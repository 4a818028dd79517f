from __future__ import annotations

import functools
from abc import ABC
from collections.abc import Callable
from typing import Any

from eth_utils import to_checksum_address
from loguru import logger

from scroll_paths.core.constants.chains import CHAIN_ID_SCROLL


def require_wallet(fn: Callable) -> Callable:
    """Return ``(False, ...)`` early if the adapter has no wallet to act for."""

    @functools.wraps(fn)
    async def wrapper(self: BaseAdapter, *args: Any, **kwargs: Any) -> Any:
        if not self.wallet_address:
            return False, "wallet address not configured"
        return await fn(self, *args, **kwargs)

    return wrapper


class BaseAdapter(ABC):
    """Wallet, signer and chain wiring shared by the on-chain adapters.

    ``config["strategy_wallet"]["address"]`` is the account the adapter signs
    for. Adapter-specific settings live under ``config[config_section]``; its
    ``chain_id`` defaults to Scroll.
    """

    adapter_type: str | None = None
    config_section: str | None = None

    def __init__(
        self,
        name: str,
        config: dict[str, Any] | None = None,
        signing_callback: Callable | None = None,
    ):
        self.name = name
        self.config = config or {}
        self.logger = logger.bind(adapter=self.__class__.__name__)
        self.signing_callback = signing_callback

        wallet = (self.config.get("strategy_wallet") or {}).get("address")
        self.wallet_address: str | None = to_checksum_address(wallet) if wallet else None

        section = self.config.get(self.config_section) if self.config_section else None
        self.settings: dict[str, Any] = dict(section or {})
        self.chain_id = int(self.settings.get("chain_id") or CHAIN_ID_SCROLL)

    def resolve_chain_id(self, chain_id: int | None) -> int:
        return int(chain_id or self.chain_id)

    async def close(self) -> None:
        pass
