from collections.abc import Awaitable, Callable
from typing import Any

from eth_account import Account
from eth_account.signers.local import LocalAccount

from scroll_paths.core.config import find_wallet_by_label
from scroll_paths.core.errors import SigningFailed
from scroll_paths.core.utils.transaction import get_account_nonce

SigningCallback = Callable[[dict], Awaitable[bytes]]
TypedDataCallback = Callable[[dict], Awaitable[bytes]]


def make_random_wallet() -> dict[str, str]:
    acct = Account.create()
    return {
        "address": acct.address,
        "private_key_hex": acct.key.hex(),
    }


class LocalWallet:
    """A private key held in process, signing transactions and EIP-712 payloads."""

    def __init__(self, private_key: str):
        if not private_key:
            raise SigningFailed("No private key provided")
        pk = private_key if private_key.startswith("0x") else "0x" + private_key
        try:
            self._account: LocalAccount = Account.from_key(pk)
        except (ValueError, TypeError) as exc:
            raise SigningFailed(f"Invalid private key: {exc}") from exc

    @classmethod
    def from_config(cls, label: str) -> "LocalWallet":
        wallet = find_wallet_by_label(label)
        if not wallet:
            raise ValueError(f"Wallet label not found in config.json: {label}")
        pk = str(wallet.get("private_key") or wallet.get("private_key_hex") or "")
        instance = cls(pk.strip())
        configured = str(wallet.get("address") or "").strip()
        if configured and configured.lower() != instance.address.lower():
            raise ValueError(f"Wallet '{label}' private key does not match address")
        return instance

    @property
    def address(self) -> str:
        return self._account.address

    def sign_transaction(self, transaction: dict[str, Any]) -> bytes:
        try:
            return bytes(self._account.sign_transaction(transaction).raw_transaction)
        except Exception as exc:
            raise SigningFailed(f"Transaction signing failed: {exc}") from exc

    def sign_typed_data(self, typed_data: dict[str, Any]) -> bytes:
        try:
            signed = self._account.sign_typed_data(full_message=typed_data)
        except Exception as exc:
            raise SigningFailed(f"Typed data signing failed: {exc}") from exc
        return bytes(signed.signature)

    async def get_nonce(self, chain_id: int) -> int:
        return await get_account_nonce(chain_id, self.address)

    def signing_callback(self) -> SigningCallback:
        async def sign(transaction: dict) -> bytes:
            return self.sign_transaction(transaction)

        return sign

    def typed_data_callback(self) -> TypedDataCallback:
        async def sign(typed_data: dict) -> bytes:
            return self.sign_typed_data(typed_data)

        return sign
