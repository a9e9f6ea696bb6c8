"""
Sei EVM networks, token addresses and precompiles
"""

from dataclasses import dataclass
from typing import Dict


@dataclass(frozen=True)
class SeiChain:
    chain_id: int
    name: str
    network: str
    rpc_url: str
    explorer_url: str
    native_symbol: str = "SEI"
    native_decimals: int = 18


SEI_CHAINS: Dict[str, SeiChain] = {
    "sei-mainnet": SeiChain(1329, "Sei Mainnet", "sei-mainnet",
                            "https://evm-rpc.sei-apis.com", "https://seitrace.com"),
    "sei-testnet": SeiChain(713715, "Sei Testnet", "sei-testnet",
                            "https://evm-rpc-testnet.sei-apis.com", "https://testnet.seitrace.com"),
    "sei-devnet": SeiChain(713715, "Sei Devnet", "sei-devnet",
                           "https://evm-rpc-arctic-1.sei-apis.com", "https://devnet.seitrace.com"),
}

NATIVE_TOKEN_ADDRESS = "0x0000000000000000000000000000000000000000"

_SHARED_TOKENS = {
    "USDC": "0x3894085Ef7Ff0f0aeDf52E2A2704928d259f9c3a",
    "USDT": "0xB75D0B03c06A926e488e2659DF1A861F860bD3d1",
    "SEI": NATIVE_TOKEN_ADDRESS,
    "WSEI": "0xE30feDd158A2e3b13e9badaeABaFc5516e95e8C7",
    "ETH": "0x160345fC359604fC6e70E3c5fAcbdE5F7A9342d8",
    "BTC": "0x30D6Ca5CCd7B21523516bF7c3A2E92C77F74E472",
}

TOKEN_ADDRESSES: Dict[str, Dict[str, str]] = {network: dict(_SHARED_TOKENS) for network in SEI_CHAINS}

# Cosmos <-> EVM address mapping precompile
ADDRESS_PRECOMPILE_ADDRESS = "0x0000000000000000000000000000000000001004"
ADDRESS_PRECOMPILE_ABI = [
    {
        "inputs": [{"name": "addr", "type": "string"}],
        "name": "getEvmAddr",
        "outputs": [{"name": "response", "type": "address"}],
        "stateMutability": "view",
        "type": "function",
    },
    {
        "inputs": [{"name": "addr", "type": "address"}],
        "name": "getSeiAddr",
        "outputs": [{"name": "response", "type": "string"}],
        "stateMutability": "view",
        "type": "function",
    },
]

ERC20_ABI = [
    {
        "inputs": [{"name": "owner", "type": "address"}, {"name": "spender", "type": "address"}],
        "name": "allowance",
        "outputs": [{"name": "", "type": "uint256"}],
        "stateMutability": "view",
        "type": "function",
    },
    {
        "inputs": [{"name": "spender", "type": "address"}, {"name": "amount", "type": "uint256"}],
        "name": "approve",
        "outputs": [{"name": "", "type": "bool"}],
        "stateMutability": "nonpayable",
        "type": "function",
    },
    {
        "inputs": [{"name": "account", "type": "address"}],
        "name": "balanceOf",
        "outputs": [{"name": "", "type": "uint256"}],
        "stateMutability": "view",
        "type": "function",
    },
]


def get_chain_config(network: str) -> SeiChain:
    try:
        return SEI_CHAINS[network]
    except KeyError:
        raise ValueError(f"Unsupported SEI network: {network}") from None


def get_token_address(network: str, token_symbol: str) -> str:
    tokens = TOKEN_ADDRESSES.get(network)
    if tokens is None:
        raise ValueError(f"No token addresses configured for network: {network}")
    address = tokens.get(token_symbol.upper())
    if address is None:
        raise ValueError(f"Token {token_symbol} not found on {network}")
    return address
