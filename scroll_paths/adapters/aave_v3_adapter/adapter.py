from __future__ import annotations

from typing import Any

from eth_utils import to_checksum_address

from scroll_paths.core.adapters.BaseAdapter import BaseAdapter, require_wallet
from scroll_paths.core.adapters.decorators import status_tuple
from scroll_paths.core.adapters.models import LEND, UNLEND
from scroll_paths.core.constants.aave_v3_abi import POOL_ABI, RESERVE_DATA_KEYS
from scroll_paths.core.constants.base import ADAPTER_AAVE_V3, MAX_UINT256, ZERO_ADDRESS
from scroll_paths.core.constants.contracts import AAVE_V3_POOL_BY_CHAIN
from scroll_paths.core.errors import ReserveNotFound
from scroll_paths.core.utils import web3 as web3_utils
from scroll_paths.core.utils.tokens import (
    build_transfer_from_transaction,
    ensure_allowance,
)
from scroll_paths.core.utils.transaction import (
    account_lock,
    encode_call,
    send_transaction,
)

REFERRAL_CODE = 0


def _reserve_to_dict(reserve: Any) -> dict[str, Any]:
    if isinstance(reserve, dict):
        return dict(reserve)
    return dict(zip(RESERVE_DATA_KEYS, reserve, strict=False))


class AaveV3Adapter(BaseAdapter):
    """Supply to and withdraw from an Aave v3 pool on behalf of other accounts.

    The configured strategy wallet is the custody account: it pulls funds from
    the caller (who must have approved it), approves the pool and makes the
    pool call. Each step waits for its receipt; a revert stops the sequence.
    """

    adapter_type = ADAPTER_AAVE_V3
    config_section = "aave_v3"

    def __init__(
        self,
        config: dict[str, Any] | None = None,
        signing_callback=None,
        pool_address: str | None = None,
    ) -> None:
        super().__init__("aave_v3_adapter", config, signing_callback)
        pool = pool_address or self.settings.get("pool")
        self._pool_override: str | None = to_checksum_address(pool) if pool else None

    def _pool(self, chain_id: int) -> str:
        if self._pool_override:
            return self._pool_override
        pool = AAVE_V3_POOL_BY_CHAIN.get(int(chain_id))
        if not pool:
            raise ValueError(f"Unsupported Aave v3 chain_id={chain_id}")
        return pool

    async def get_reserve_data(
        self, *, asset: str, chain_id: int | None = None
    ) -> dict[str, Any]:
        chain_id = self.resolve_chain_id(chain_id)
        pool = self._pool(chain_id)
        async with web3_utils.web3_from_chain_id(chain_id) as web3:
            contract = web3.eth.contract(address=pool, abi=POOL_ABI)
            reserve = await contract.functions.getReserveData(
                to_checksum_address(asset)
            ).call(block_identifier="latest")
        return _reserve_to_dict(reserve)

    async def get_reserve_token(self, *, asset: str, chain_id: int | None = None) -> str:
        """Receipt (aToken) address for ``asset``, read from the pool every call."""
        chain_id = self.resolve_chain_id(chain_id)
        reserve = await self.get_reserve_data(asset=asset, chain_id=chain_id)
        a_token = reserve.get("aTokenAddress")
        if not a_token or str(a_token).lower() == ZERO_ADDRESS:
            raise ReserveNotFound(to_checksum_address(asset), self._pool(chain_id))
        return to_checksum_address(str(a_token))

    async def _pull_from(
        self, *, token: str, owner: str, amount: int, chain_id: int
    ) -> str:
        custody = self.wallet_address
        tx = await build_transfer_from_transaction(
            from_address=custody,
            chain_id=chain_id,
            token_address=token,
            owner_address=owner,
            recipient_address=custody,
            amount=amount,
        )
        return await send_transaction(tx, self.signing_callback)

    async def _approve_pool(self, *, token: str, amount: int, chain_id: int) -> str | None:
        approved = await ensure_allowance(
            token_address=token,
            owner=self.wallet_address,
            spender=self._pool(chain_id),
            amount=amount,
            chain_id=chain_id,
            signing_callback=self.signing_callback,
            approval_amount=MAX_UINT256,
        )
        return approved.approval_tx_hash

    async def _pool_call(self, *, fn_name: str, args: list[Any], chain_id: int) -> str:
        tx = await encode_call(
            target=self._pool(chain_id),
            abi=POOL_ABI,
            fn_name=fn_name,
            args=args,
            from_address=self.wallet_address,
            chain_id=chain_id,
        )
        return await send_transaction(tx, self.signing_callback)

    @require_wallet
    @status_tuple
    async def stake(
        self,
        *,
        asset: str,
        amount: int,
        caller: str,
        on_behalf_of: str | None = None,
        chain_id: int | None = None,
    ) -> dict[str, Any]:
        chain_id = self.resolve_chain_id(chain_id)
        amount = int(amount)
        if amount <= 0:
            raise ValueError("amount must be positive")
        asset = to_checksum_address(asset)
        caller = to_checksum_address(caller)
        on_behalf_of = to_checksum_address(on_behalf_of or caller)

        async with account_lock(chain_id, self.wallet_address):
            pull_hash = await self._pull_from(
                token=asset, owner=caller, amount=amount, chain_id=chain_id
            )
            approve_hash = await self._approve_pool(
                token=asset, amount=amount, chain_id=chain_id
            )
            supply_hash = await self._pool_call(
                fn_name="supply",
                args=[asset, amount, on_behalf_of, REFERRAL_CODE],
                chain_id=chain_id,
            )

        self.logger.info(f"Supplied {amount} of {asset} for {on_behalf_of}: tx={supply_hash}")
        return LEND(
            adapter=self.adapter_type,
            token_address=asset,
            pool_address=self._pool(chain_id),
            amount=str(amount),
            on_behalf_of=on_behalf_of,
            transaction_hash=supply_hash,
            transaction_chain_id=chain_id,
            transaction_hashes={
                "pull_tx": pull_hash,
                "approve_tx": approve_hash,
                "supply_tx": supply_hash,
            },
        ).model_dump(mode="json")

    @require_wallet
    @status_tuple
    async def unstake(
        self,
        *,
        asset: str,
        amount: int,
        caller: str,
        to: str | None = None,
        chain_id: int | None = None,
    ) -> dict[str, Any]:
        chain_id = self.resolve_chain_id(chain_id)
        amount = int(amount)
        if amount <= 0:
            raise ValueError("amount must be positive")
        asset = to_checksum_address(asset)
        caller = to_checksum_address(caller)
        recipient = to_checksum_address(to or caller)

        async with account_lock(chain_id, self.wallet_address):
            a_token = await self.get_reserve_token(asset=asset, chain_id=chain_id)
            pull_hash = await self._pull_from(
                token=a_token, owner=caller, amount=amount, chain_id=chain_id
            )
            approve_hash = await self._approve_pool(
                token=a_token, amount=amount, chain_id=chain_id
            )
            withdraw_hash = await self._pool_call(
                fn_name="withdraw",
                args=[asset, amount, recipient],
                chain_id=chain_id,
            )

        self.logger.info(f"Withdrew {amount} of {asset} to {recipient}: tx={withdraw_hash}")
        return UNLEND(
            adapter=self.adapter_type,
            token_address=asset,
            receipt_token_address=a_token,
            pool_address=self._pool(chain_id),
            amount=str(amount),
            recipient=recipient,
            transaction_hash=withdraw_hash,
            transaction_chain_id=chain_id,
            transaction_hashes={
                "pull_tx": pull_hash,
                "approve_tx": approve_hash,
                "withdraw_tx": withdraw_hash,
            },
        ).model_dump(mode="json")

    @require_wallet
    @status_tuple
    async def lend(
        self, *, underlying_token: str, qty: int, chain_id: int | None = None
    ) -> str:
        chain_id = self.resolve_chain_id(chain_id)
        qty = int(qty)
        if qty <= 0:
            raise ValueError("qty must be positive")
        asset = to_checksum_address(underlying_token)

        async with account_lock(chain_id, self.wallet_address):
            await self._approve_pool(token=asset, amount=qty, chain_id=chain_id)
            return await self._pool_call(
                fn_name="supply",
                args=[asset, qty, self.wallet_address, REFERRAL_CODE],
                chain_id=chain_id,
            )

    @require_wallet
    @status_tuple
    async def unlend(
        self,
        *,
        underlying_token: str,
        qty: int,
        chain_id: int | None = None,
        withdraw_full: bool = False,
    ) -> str:
        chain_id = self.resolve_chain_id(chain_id)
        qty = int(qty)
        if qty <= 0 and not withdraw_full:
            raise ValueError("qty must be positive")
        asset = to_checksum_address(underlying_token)
        amount = MAX_UINT256 if withdraw_full else qty

        async with account_lock(chain_id, self.wallet_address):
            return await self._pool_call(
                fn_name="withdraw",
                args=[asset, amount, self.wallet_address],
                chain_id=chain_id,
            )
