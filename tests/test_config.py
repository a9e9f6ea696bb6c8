"""
Configuration loading and validation tests
"""

import json

import pytest

from yield_delta.agents.context import YieldDeltaContext
from yield_delta.amm import DeviationBasis
from yield_delta.data.config import SETTING_KEYS, ConfigManager, validate_sei_config
from yield_delta.errors import ConfigurationError
from yield_delta.execution.routing import GeographicConfig, PerpPreference, UserGeography

PRIVATE_KEY = "11" * 32


@pytest.fixture
def clean_env(monkeypatch):
    for key in SETTING_KEYS + ["YIELD_DELTA_CONFIG"]:
        monkeypatch.delenv(key, raising=False)
    yield monkeypatch
    ConfigManager.reset()


@pytest.fixture
def config_file(tmp_path):
    def write(data):
        path = tmp_path / "config.json"
        path.write_text(json.dumps(data))
        return str(path)
    return write


class TestConfigManager:
    def test_sections_and_dot_lookup(self, clean_env, config_file):
        """Sections load and dotted keys resolve"""
        manager = ConfigManager(config_file({
            "settings": {"SEI_RPC_URL": "https://rpc.test"},
            "funding_arbitrage": {"min_spread": 0.0002},
            "amm": {"deviation_basis": "midpoint"},
        }))

        assert manager.get("funding_arbitrage.min_spread") == 0.0002
        assert manager.get("funding_arbitrage.missing", "fallback") == "fallback"
        assert manager.arbitrage_config == {"min_spread": 0.0002}
        assert manager.oracle_config == {}

    def test_env_overrides_file(self, clean_env, config_file):
        """Environment variables override the file"""
        manager = ConfigManager(config_file({"settings": {"SEI_NETWORK": "sei-testnet"}}))
        clean_env.setenv("SEI_NETWORK", "sei-mainnet")

        assert manager.get_setting("SEI_NETWORK") == "sei-mainnet"
        manager.set_setting("SEI_NETWORK", "sei-devnet")
        assert manager.get_setting("SEI_NETWORK") == "sei-devnet"

    def test_missing_file_uses_defaults(self, clean_env, tmp_path):
        """A missing file falls back to defaults"""
        manager = ConfigManager(str(tmp_path / "absent.json"))
        assert manager.get("settings") is None

    def test_singleton(self, clean_env, config_file):
        """The config manager is shared"""
        first = ConfigManager(config_file({}))
        assert ConfigManager() is first


class TestSeiConfigValidation:
    def test_requires_rpc_url(self, clean_env, config_file):
        """Settings need an RPC URL"""
        with pytest.raises(ConfigurationError, match="SEI_RPC_URL"):
            validate_sei_config(ConfigManager(config_file({})))

    def test_valid_settings(self, clean_env, config_file):
        """Valid settings load"""
        clean_env.setenv("COINBASE_SANDBOX", "true")
        config = validate_sei_config(ConfigManager(config_file({"settings": {
            "SEI_RPC_URL": "https://rpc.test",
            "SEI_NETWORK": "sei-mainnet",
            "SEI_PRIVATE_KEY": PRIVATE_KEY,
            "USER_GEOGRAPHY": "US",
        }})))

        assert config.sei_private_key == "0x" + PRIVATE_KEY
        assert config.coinbase_sandbox is True
        assert not config.is_testnet

        geo = GeographicConfig.from_sei_config(config)
        assert geo.user_geography is UserGeography.US
        assert geo.perp_preference is PerpPreference.GEOGRAPHIC
        assert not geo.has_coinbase_credentials

    @pytest.mark.parametrize("settings", [
        {"SEI_NETWORK": "sei-moonnet"},
        {"SEI_PRIVATE_KEY": "0x1234"},
        {"USER_GEOGRAPHY": "MARS"},
    ])
    def test_invalid_settings(self, clean_env, config_file, settings):
        """Invalid settings raise ConfigurationError"""
        with pytest.raises(ConfigurationError, match="validation failed"):
            validate_sei_config(ConfigManager(config_file({"settings": {"SEI_RPC_URL": "https://rpc.test", **settings}})))

    def test_context_reports_configuration_lazily(self, clean_env, config_file):
        """The context only validates config when it is used"""
        context = YieldDeltaContext(config_manager=ConfigManager(config_file({"amm": {"deviation_basis": "midpoint"}})))

        assert context.amm.deviation_basis is DeviationBasis.MIDPOINT
        with pytest.raises(ConfigurationError):
            context.config
