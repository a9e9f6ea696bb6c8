"""
Sei EVM wallet - account, balances, contract reads and transaction submission
"""

from typing import Any, Dict, List, Optional, Sequence

from eth_account import Account
from eth_account.signers.local import LocalAccount
from loguru import logger
from web3 import AsyncWeb3, Web3

from ..data.cache import MemoryCache
from ..data.config import SeiConfig
from ..data.http_client import retry_reads
from ..data.networks import SeiChain, get_chain_config
from ..data.onchain.web3_client import get_async_w3
from ..errors import ConfigurationError, TransactionError


class WalletProvider:
    """Signs and submits transactions for a single private-key account"""

    BALANCE_TTL = 5

    def __init__(self, private_key: str, chain: SeiChain, w3: Optional[AsyncWeb3] = None,
                 cache: Optional[MemoryCache] = None):
        self.account: LocalAccount = Account.from_key(private_key)
        self.chain = chain
        self.w3 = w3 or get_async_w3(chain.network, chain.rpc_url)
        self.cache = cache or MemoryCache(default_ttl=self.BALANCE_TTL)

    @classmethod
    def from_config(cls, config: SeiConfig) -> "WalletProvider":
        if not config.sei_private_key:
            raise ConfigurationError("SEI_PRIVATE_KEY is required for wallet operations")
        chain = get_chain_config(config.sei_network)
        w3 = get_async_w3(chain.network, config.sei_rpc_url)
        return cls(config.sei_private_key, chain, w3=w3)

    @property
    def address(self) -> str:
        return self.account.address

    async def get_balance(self) -> float:
        """Native SEI balance"""
        cached = self.cache.get(f"balance:{self.address}")
        if cached is not None:
            return cached
        wei = await retry_reads(self.w3.eth.get_balance)(self.address)
        balance = float(Web3.from_wei(wei, "ether"))
        self.cache.set(f"balance:{self.address}", balance)
        return balance

    async def read_contract(self, address: str, abi: List[Dict[str, Any]], function: str,
                            args: Sequence[Any] = ()) -> Any:
        contract = self.w3.eth.contract(address=Web3.to_checksum_address(address), abi=abi)
        return await retry_reads(contract.functions[function](*args).call)()

    def encode_call(self, address: str, abi: List[Dict[str, Any]], function: str, args: Sequence[Any]) -> str:
        contract = self.w3.eth.contract(address=Web3.to_checksum_address(address), abi=abi)
        return contract.encode_abi(function, args=list(args))

    async def estimate_gas(self, to: str, value: int = 0, data: str = "0x") -> int:
        tx = {"from": self.address, "to": Web3.to_checksum_address(to), "value": value, "data": data}
        return await retry_reads(self.w3.eth.estimate_gas)(tx)

    async def send_transaction(self, to: str, value: int = 0, data: str = "0x", gas: Optional[int] = None) -> str:
        """
        Build, sign and broadcast a transaction.

        Args:
            to: recipient or contract address
            value: amount of native SEI in wei
            data: hex calldata
            gas: gas limit; estimated when omitted

        Returns:
            The transaction hash as 0x-prefixed hex
        """
        try:
            to = Web3.to_checksum_address(to)
            nonce = await self.w3.eth.get_transaction_count(self.address)
            gas_price = await self.w3.eth.gas_price
            if gas is None:
                gas = await self.estimate_gas(to, value, data)
            tx = {
                "from": self.address,
                "to": to,
                "value": value,
                "data": data,
                "nonce": nonce,
                "gas": gas,
                "gasPrice": gas_price,
                "chainId": self.chain.chain_id,
            }
            signed = self.account.sign_transaction(tx)
            tx_hash = await self.w3.eth.send_raw_transaction(signed.raw_transaction)
        except Exception as e:
            logger.error(f"Transaction to {to} failed: {e}")
            raise TransactionError(str(e)) from e

        hex_hash = Web3.to_hex(tx_hash)
        logger.info(f"Submitted transaction {hex_hash} on {self.chain.name}")
        return hex_hash
