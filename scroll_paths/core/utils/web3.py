from contextlib import asynccontextmanager

from loguru import logger
from web3 import AsyncHTTPProvider, AsyncWeb3

from scroll_paths.core.config import get_rpc_urls
from scroll_paths.core.constants.base import DEFAULT_HTTP_TIMEOUT
from scroll_paths.core.constants.chains import PUBLIC_RPC_URLS


def _get_rpcs_for_chain_id(chain_id: int) -> list[str]:
    """Configured RPCs for ``chain_id`` (string or int keys), else the public one."""
    mapping = get_rpc_urls()
    rpcs = mapping.get(str(chain_id), mapping.get(chain_id))
    if rpcs:
        return [rpcs] if isinstance(rpcs, str) else list(rpcs)

    public = PUBLIC_RPC_URLS.get(int(chain_id))
    if public is None:
        raise ValueError(f"No RPCs configured for chain ID {chain_id}")
    logger.debug(f"No RPC configured for chain {chain_id}; using {public}")
    return [public]


def _get_web3(rpc: str) -> AsyncWeb3:
    return AsyncWeb3(
        AsyncHTTPProvider(
            rpc,
            request_kwargs={
                "headers": AsyncHTTPProvider.get_request_headers(),
                "timeout": DEFAULT_HTTP_TIMEOUT,
            },
        )
    )


def get_transaction_chain_id(transaction: dict) -> int:
    if "chainId" not in transaction:
        raise ValueError("Transaction does not contain chainId")
    return int(transaction["chainId"])


def get_web3s_from_chain_id(chain_id: int) -> list[AsyncWeb3]:
    return [_get_web3(rpc) for rpc in _get_rpcs_for_chain_id(chain_id)]


async def _disconnect_all(web3s: list[AsyncWeb3]) -> None:
    for web3 in web3s:
        await web3.provider.disconnect()


@asynccontextmanager
async def web3s_from_chain_id(chain_id: int):
    """Yield one ``AsyncWeb3`` per RPC; providers are disconnected on exit."""
    web3s = get_web3s_from_chain_id(chain_id)
    try:
        yield web3s
    finally:
        await _disconnect_all(web3s)


@asynccontextmanager
async def web3_from_chain_id(chain_id: int):
    """Yield a client for the first RPC of ``chain_id``."""
    web3 = _get_web3(_get_rpcs_for_chain_id(chain_id)[0])
    try:
        yield web3
    finally:
        await _disconnect_all([web3])
