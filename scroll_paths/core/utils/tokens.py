from collections.abc import Callable
from dataclasses import dataclass

from eth_utils import to_checksum_address
from loguru import logger
from web3 import AsyncWeb3
from web3.exceptions import TimeExhausted

from scroll_paths.core.constants.contracts import TOKENS_REQUIRING_APPROVAL_RESET
from scroll_paths.core.constants.erc20_abi import ERC20_ABI
from scroll_paths.core.errors import ApprovalFailed, BroadcastRejected
from scroll_paths.core.utils.transaction import (
    TransactionRevertedError,
    send_transaction,
)
from scroll_paths.core.utils.web3 import web3_from_chain_id

NATIVE_TOKEN_ADDRESSES: set = {
    "0x0000000000000000000000000000000000000000",
    "0xeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeee",
}


@dataclass(frozen=True)
class AllowanceResult:
    already_sufficient: bool
    approval_tx_hash: str | None = None


def is_native_token(token_address: str | None) -> bool:
    if token_address is None:
        return True
    normalized = str(token_address).strip().lower()
    if normalized in ("", "native"):
        return True
    return normalized in NATIVE_TOKEN_ADDRESSES


def _erc20(web3: AsyncWeb3, token_address: str):
    return web3.eth.contract(address=web3.to_checksum_address(str(token_address)), abi=ERC20_ABI)


async def _read(chain_id: int, web3: AsyncWeb3 | None, read: Callable) -> int:
    if web3 is not None:
        return int(await read(web3))
    async with web3_from_chain_id(chain_id) as w3:
        return int(await read(w3))


async def get_token_balance(
    token_address: str | None,
    chain_id: int,
    wallet_address: str,
    *,
    web3: AsyncWeb3 | None = None,
    block_identifier: str | int = "pending",
) -> int:
    """Native or ERC20 balance of ``wallet_address`` (pending state by default)."""

    async def _balance(w3: AsyncWeb3) -> int:
        wallet = w3.to_checksum_address(wallet_address)
        if is_native_token(token_address):
            return await w3.eth.get_balance(wallet, block_identifier=block_identifier)
        return await _erc20(w3, token_address).functions.balanceOf(wallet).call(
            block_identifier=block_identifier
        )

    return await _read(chain_id, web3, _balance)


async def get_token_decimals(
    token_address: str | None,
    chain_id: int,
    *,
    web3: AsyncWeb3 | None = None,
    default_native_decimals: int = 18,
) -> int:
    if is_native_token(token_address):
        return int(default_native_decimals)

    async def _decimals(w3: AsyncWeb3) -> int:
        return await _erc20(w3, token_address).functions.decimals().call(
            block_identifier="latest"
        )

    return await _read(chain_id, web3, _decimals)


async def get_token_allowance(
    token_address: str, chain_id: int, owner_address: str, spender_address: str
) -> int:
    async def _allowance(w3: AsyncWeb3) -> int:
        return await _erc20(w3, token_address).functions.allowance(
            w3.to_checksum_address(owner_address),
            w3.to_checksum_address(spender_address),
        ).call(block_identifier="pending")

    return await _read(chain_id, None, _allowance)


async def _erc20_transaction(
    *, from_address: str, chain_id: int, token_address: str, fn_name: str, args: list
) -> dict:
    async with web3_from_chain_id(chain_id) as web3:
        data = _erc20(web3, token_address).encode_abi(fn_name, args)
        return {
            "to": web3.to_checksum_address(token_address),
            "from": web3.to_checksum_address(from_address),
            "data": data,
            "chainId": chain_id,
        }


async def build_approve_transaction(
    from_address: str,
    chain_id: int,
    token_address: str,
    spender_address: str,
    amount: int,
) -> dict:
    return await _erc20_transaction(
        from_address=from_address,
        chain_id=chain_id,
        token_address=token_address,
        fn_name="approve",
        args=[to_checksum_address(spender_address), amount],
    )


async def build_transfer_from_transaction(
    from_address: str,
    chain_id: int,
    token_address: str,
    owner_address: str,
    recipient_address: str,
    amount: int,
) -> dict:
    """``transferFrom(owner, recipient, amount)`` sent by ``from_address``.

    ``owner`` must have approved ``from_address`` beforehand.
    """
    return await _erc20_transaction(
        from_address=from_address,
        chain_id=chain_id,
        token_address=token_address,
        fn_name="transferFrom",
        args=[
            to_checksum_address(owner_address),
            to_checksum_address(recipient_address),
            amount,
        ],
    )


async def _send_approval(
    transaction: dict, signing_callback: Callable, token_address: str, spender: str
) -> str:
    try:
        return await send_transaction(transaction, signing_callback)
    except TransactionRevertedError as exc:
        raise ApprovalFailed(
            token_address, spender, message=str(exc), txn_hash=exc.txn_hash
        ) from exc
    except TimeExhausted as exc:
        raise ApprovalFailed(
            token_address, spender, message=f"Approval not confirmed: {exc}"
        ) from exc
    except BroadcastRejected as exc:
        raise ApprovalFailed(token_address, spender, message=str(exc)) from exc


async def ensure_allowance(
    *,
    token_address: str,
    owner: str,
    spender: str,
    amount: int,
    chain_id: int,
    signing_callback: Callable,
    approval_amount: int | None = None,
) -> AllowanceResult:
    """Approve ``spender`` only when the current allowance is below ``amount``.

    Waits for the approval to confirm. Not safe to run concurrently for the same
    (token, owner, spender); callers serialize per account.
    """
    allowance = await get_token_allowance(token_address, chain_id, owner, spender)
    if allowance >= amount:
        logger.info(
            f"Allowance of {spender} on {token_address} already sufficient ({allowance} >= {amount})"
        )
        return AllowanceResult(already_sufficient=True)

    if (
        int(chain_id),
        to_checksum_address(token_address),
    ) in TOKENS_REQUIRING_APPROVAL_RESET and allowance > 0:
        clear_transaction = await build_approve_transaction(
            from_address=owner,
            chain_id=chain_id,
            token_address=token_address,
            spender_address=spender,
            amount=0,
        )
        await _send_approval(clear_transaction, signing_callback, token_address, spender)

    approve_tx = await build_approve_transaction(
        from_address=owner,
        chain_id=chain_id,
        token_address=token_address,
        spender_address=spender,
        amount=approval_amount if approval_amount is not None else amount,
    )
    txn_hash = await _send_approval(approve_tx, signing_callback, token_address, spender)
    logger.info(f"Approved {spender} on {token_address}: tx={txn_hash}")
    return AllowanceResult(already_sufficient=False, approval_tx_hash=txn_hash)
