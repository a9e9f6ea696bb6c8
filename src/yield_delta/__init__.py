"""
Yield Delta - DeFi agent plugin for the Sei EVM
"""

from .plugin import YieldDeltaPlugin, yield_delta_plugin

__version__ = "0.1.0"

__all__ = ["YieldDeltaPlugin", "yield_delta_plugin", "__version__"]
