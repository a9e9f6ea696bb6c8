
import os
import json
import logging
from typing import Dict, Any, Optional, Literal
from pathlib import Path

from dotenv import load_dotenv
from pydantic import BaseModel, Field, ValidationError, field_validator

from ..errors import ConfigurationError

logger = logging.getLogger(__name__)

load_dotenv()


class ConfigManager:
    """
    Centralized configuration manager.
    Singleton pattern to load and access config settings.

    Settings resolve in this order: explicit overrides, environment
    variables (.env included), then the ``settings`` section of config.json.
    """
    _instance = None
    _config: Dict[str, Any] = {}
    _overrides: Dict[str, Any] = {}

    def __new__(cls, config_path: Optional[str] = None):
        if cls._instance is None or config_path is not None:
            cls._instance = super(ConfigManager, cls).__new__(cls)
            cls._instance._overrides = {}
            cls._instance._load_config(config_path)
        return cls._instance

    @classmethod
    def reset(cls):
        cls._instance = None

    def _load_config(self, config_path: Optional[str] = None):
        """Load configuration from JSON file"""
        try:
            if config_path is None:
                config_path = os.getenv("YIELD_DELTA_CONFIG")
            if config_path is None:
                # Default path: project_root/config/config.json
                base_path = Path(__file__).parent.parent.parent.parent
                config_path = base_path / "config" / "config.json"
            config_path = Path(config_path)

            if config_path.exists():
                with open(config_path, "r") as f:
                    self._config = json.load(f)
                logger.info(f"Loaded config from {config_path}")
            else:
                logger.warning(f"Config file not found at {config_path}. Using defaults.")
                self._config = {}

        except (OSError, json.JSONDecodeError) as e:
            logger.error(f"Error loading config: {e}")
            self._config = {}

    def get(self, key: str, default: Any = None) -> Any:
        """Get config value by key (dot notation supported)"""
        keys = key.split(".")
        value = self._config

        try:
            for k in keys:
                value = value.get(k)
                if value is None:
                    return default
            return value
        except AttributeError:
            return default

    def get_setting(self, key: str, default: Any = None) -> Any:
        """Plugin setting such as SEI_RPC_URL"""
        if key in self._overrides:
            return self._overrides[key]
        env_value = os.getenv(key)
        if env_value not in (None, ""):
            return env_value
        return self.get(f"settings.{key}", default)

    def set_setting(self, key: str, value: Any):
        self._overrides[key] = value

    # Type-safe getters for specific sections

    @property
    def oracle_config(self) -> Dict[str, Any]:
        return self.get("oracle", {})

    @property
    def arbitrage_config(self) -> Dict[str, Any]:
        return self.get("funding_arbitrage", {})

    @property
    def amm_config(self) -> Dict[str, Any]:
        return self.get("amm", {})


class SeiConfig(BaseModel):
    """Validated plugin settings"""
    sei_rpc_url: str = Field(min_length=1)
    sei_network: Literal["sei-mainnet", "sei-testnet", "sei-devnet"] = "sei-testnet"
    sei_chain_id: Optional[int] = None
    sei_private_key: Optional[str] = None
    sei_address: Optional[str] = None
    dragonswap_api_url: Optional[str] = None
    dragonswap_router_address: Optional[str] = None
    oracle_api_key: Optional[str] = None
    perps_contract_address: Optional[str] = None
    redstone_oracle_address: Optional[str] = None
    user_geography: Literal["US", "EU", "ASIA", "GLOBAL"] = "GLOBAL"
    perp_preference: Literal["GEOGRAPHIC", "GLOBAL", "COINBASE_ONLY", "ONCHAIN_ONLY"] = "GEOGRAPHIC"
    coinbase_advanced_api_key: Optional[str] = None
    coinbase_advanced_secret: Optional[str] = None
    coinbase_advanced_passphrase: Optional[str] = None
    coinbase_sandbox: bool = False

    @field_validator("sei_private_key")
    @classmethod
    def _check_private_key(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        hex_part = v[2:] if v.startswith("0x") else v
        if len(hex_part) != 64:
            raise ValueError("SEI_PRIVATE_KEY must be 32 bytes of hex")
        return v if v.startswith("0x") else f"0x{v}"

    @property
    def is_testnet(self) -> bool:
        return self.sei_network != "sei-mainnet"


SETTING_KEYS = [name.upper() for name in SeiConfig.model_fields]


def validate_sei_config(config: Optional[ConfigManager] = None) -> SeiConfig:
    """
    Read and validate plugin settings.

    Raises:
        ConfigurationError: when SEI_RPC_URL is missing or a value is invalid
    """
    config = config or ConfigManager()
    raw = {}
    for key in SETTING_KEYS:
        value = config.get_setting(key)
        if value is not None:
            raw[key.lower()] = value

    if "coinbase_sandbox" in raw and isinstance(raw["coinbase_sandbox"], str):
        raw["coinbase_sandbox"] = raw["coinbase_sandbox"].lower() == "true"

    if not raw.get("sei_rpc_url"):
        raise ConfigurationError("Missing required environment variables: SEI_RPC_URL")

    try:
        return SeiConfig(**raw)
    except ValidationError as e:
        details = "; ".join(f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors())
        raise ConfigurationError(f"SEI configuration validation failed: {details}") from e
