"""
Native SEI transfers to EVM (0x) or Cosmos (sei1) recipients
"""

from loguru import logger
from web3 import Web3

from ..data.models import TransferParams, TxReceipt
from ..data.networks import ADDRESS_PRECOMPILE_ABI, ADDRESS_PRECOMPILE_ADDRESS
from ..errors import InvalidParametersError, TransactionError
from .wallet import WalletProvider

DEFAULT_TRANSFER_GAS = 21000


class TransferAction:
    def __init__(self, wallet: WalletProvider):
        self.wallet = wallet

    @staticmethod
    def validate_params(params: TransferParams):
        if params.amount is None or params.amount <= 0:
            raise InvalidParametersError("Invalid amount: must be a positive number")
        address = params.to_address or ""
        if not address:
            raise InvalidParametersError("Invalid recipient address: cannot be empty")
        if address.startswith("sei"):
            if len(address) != 43:
                raise InvalidParametersError("Invalid SEI address: must be 43 characters long")
        elif address.startswith("0x"):
            if len(address) != 42:
                raise InvalidParametersError("Invalid EVM address: must be 42 characters long")
        else:
            raise InvalidParametersError('Invalid address format: must start with "sei" or "0x"')

    async def resolve_recipient(self, address: str) -> str:
        """Map a sei1 bech32 address to its EVM counterpart"""
        if not address.startswith("sei"):
            return Web3.to_checksum_address(address)
        try:
            evm_address = await self.wallet.read_contract(
                ADDRESS_PRECOMPILE_ADDRESS, ADDRESS_PRECOMPILE_ABI, "getEvmAddr", [address])
        except Exception as e:
            raise TransactionError(f"Failed to translate SEI address: {e}") from e
        if not isinstance(evm_address, str) or not evm_address.startswith("0x"):
            raise TransactionError(f"Recipient does not have valid EVM address. Got: {evm_address}")
        logger.info(f"Translated address {address} to EVM address {evm_address}")
        return evm_address

    async def estimate_gas(self, params: TransferParams) -> int:
        try:
            self.validate_params(params)
            recipient = await self.resolve_recipient(params.to_address)
            return await self.wallet.estimate_gas(recipient, Web3.to_wei(str(params.amount), "ether"))
        except Exception as e:
            logger.error(f"Gas estimation failed: {e}")
            return DEFAULT_TRANSFER_GAS

    async def transfer(self, params: TransferParams) -> TxReceipt:
        self.validate_params(params)
        logger.info(f"Transferring: {params.amount} SEI to {params.to_address} on {self.wallet.chain.name}")
        recipient = await self.resolve_recipient(params.to_address)
        tx_hash = await self.wallet.send_transaction(recipient, value=Web3.to_wei(str(params.amount), "ether"))
        return TxReceipt(
            hash=tx_hash,
            from_address=self.wallet.address,
            to_address=params.to_address,
            value=params.amount,
            chain_id=self.wallet.chain.chain_id,
        )
