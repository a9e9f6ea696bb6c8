from web3 import AsyncHTTPProvider, AsyncWeb3
from functools import lru_cache
from typing import Optional
import os

from ..http_client import DEFAULT_TIMEOUT
from ..networks import get_chain_config


def resolve_rpc_url(network: str, rpc_url: Optional[str] = None) -> str:
    url = rpc_url or os.getenv("SEI_RPC_URL") or get_chain_config(network).rpc_url
    if not url:
        raise RuntimeError(f"No RPC for network={network}")
    return url


@lru_cache(maxsize=16)
def get_async_w3(network: str, rpc_url: Optional[str] = None) -> AsyncWeb3:
    provider = AsyncHTTPProvider(resolve_rpc_url(network, rpc_url), request_kwargs={"timeout": DEFAULT_TIMEOUT})
    return AsyncWeb3(provider)
