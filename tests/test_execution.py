"""
Execution layer tests: transfers, DragonSwap, perps and portfolio rebalancing
"""

import aiohttp
import pytest
from unittest.mock import AsyncMock, Mock

from yield_delta.data.models import PerpsTradeParams, PriceFeed, SwapParams, SwapQuote, TransferParams
from yield_delta.data.networks import SEI_CHAINS
from yield_delta.errors import ConfigurationError, InvalidParametersError, TransactionError
from yield_delta.execution import (DexAggregator, DragonSwapAPI, PerpsAPI, PortfolioRebalancer, SymphonyDEX,
                                  TransferAction)
from yield_delta.execution.dex import from_base_units, to_base_units
from yield_delta.execution.rebalance import get_strategy

EVM_ADDRESS = "0x" + "ab" * 20
SEI_ADDRESS = "sei1" + "q" * 39
ROUTER = "0x" + "11" * 20


@pytest.fixture
def wallet():
    wallet = Mock()
    wallet.address = "0x" + "cd" * 20
    wallet.chain = SEI_CHAINS["sei-testnet"]
    wallet.get_balance = AsyncMock(return_value=100.0)
    wallet.read_contract = AsyncMock()
    wallet.estimate_gas = AsyncMock(return_value=30000)
    wallet.send_transaction = AsyncMock(return_value="0xtx")
    wallet.encode_call = Mock(return_value="0xdata")
    return wallet


def feed(symbol, price):
    return PriceFeed(symbol=symbol, price=price, source="test", confidence=1.0)


class TestTransferAction:
    """Recipient validation and submission"""

    @pytest.mark.parametrize("address,amount", [
        (EVM_ADDRESS, 0),
        (EVM_ADDRESS, -1),
        ("", 1),
        ("0x1234", 1),
        ("sei1short", 1),
        ("cosmos1" + "q" * 38, 1),
    ])
    def test_invalid_params(self, address, amount):
        """Bad transfer parameters are rejected"""
        with pytest.raises(InvalidParametersError):
            TransferAction.validate_params(TransferParams(to_address=address, amount=amount))

    def test_valid_params(self):
        """Well-formed transfer parameters pass validation"""
        TransferAction.validate_params(TransferParams(to_address=EVM_ADDRESS, amount=1))
        TransferAction.validate_params(TransferParams(to_address=SEI_ADDRESS, amount=0.5))

    @pytest.mark.asyncio
    async def test_transfer_to_evm_address(self, wallet):
        """Native transfers go straight to an EVM recipient"""
        receipt = await TransferAction(wallet).transfer(TransferParams(to_address=EVM_ADDRESS, amount=1.5))

        assert receipt.hash == "0xtx"
        assert receipt.value == 1.5
        assert receipt.chain_id == 713715
        to, = wallet.send_transaction.await_args.args
        assert to.lower() == EVM_ADDRESS
        assert wallet.send_transaction.await_args.kwargs["value"] == 1500000000000000000

    @pytest.mark.asyncio
    async def test_sei_address_is_translated(self, wallet):
        """Bech32 recipients are mapped through the address precompile"""
        wallet.read_contract.return_value = EVM_ADDRESS

        await TransferAction(wallet).transfer(TransferParams(to_address=SEI_ADDRESS, amount=1))

        assert wallet.read_contract.await_args.args[2] == "getEvmAddr"
        assert wallet.send_transaction.await_args.args[0] == EVM_ADDRESS

    @pytest.mark.asyncio
    async def test_untranslatable_sei_address(self, wallet):
        """An unmapped Sei address aborts the transfer"""
        wallet.read_contract.return_value = ""

        with pytest.raises(TransactionError):
            await TransferAction(wallet).transfer(TransferParams(to_address=SEI_ADDRESS, amount=1))
        wallet.send_transaction.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_gas_estimate_falls_back(self, wallet):
        """Gas estimation errors fall back to the default limit"""
        action = TransferAction(wallet)
        assert await action.estimate_gas(TransferParams(to_address=EVM_ADDRESS, amount=1)) == 30000

        wallet.estimate_gas.side_effect = RuntimeError("rpc down")
        assert await action.estimate_gas(TransferParams(to_address=EVM_ADDRESS, amount=1)) == 21000


class TestDragonSwap:
    def test_base_units(self):
        """Token amounts convert using token decimals"""
        assert to_base_units(1.5, "USDC") == 1500000
        assert to_base_units(1, "SEI") == 10 ** 18
        assert from_base_units(2500000, "usdt") == 2.5

    @pytest.mark.asyncio
    async def test_swap_requires_wallet_and_router(self, wallet):
        """Swaps need both a wallet and a router"""
        params = SwapParams(token_in="SEI", token_out="USDC", amount_in=10)

        with pytest.raises(ConfigurationError):
            await DragonSwapAPI(network="sei-testnet", router_address=ROUTER).execute_swap(params)
        with pytest.raises(ConfigurationError):
            await DragonSwapAPI(wallet=wallet, network="sei-testnet").execute_swap(params)

    @pytest.mark.asyncio
    async def test_native_swap(self, wallet):
        """Native SEI swaps send value with the call"""
        dex = DragonSwapAPI(wallet=wallet, network="sei-testnet", router_address=ROUTER)
        dex.get_quote = AsyncMock(return_value=SwapQuote(amount_out=10))

        tx_hash = await dex.execute_swap(SwapParams(token_in="SEI", token_out="USDC", amount_in=10))

        assert tx_hash == "0xtx"
        _, _, function, args = wallet.encode_call.call_args.args
        assert function == "swapExactETHForTokens"
        assert args[0] == 9900000  # 1% slippage on 10 USDC
        assert wallet.send_transaction.await_args.kwargs["value"] == 10 * 10 ** 18

    @pytest.mark.asyncio
    async def test_token_swap_skips_approval_with_allowance(self, wallet):
        """Existing allowance means a single transaction"""
        wallet.read_contract.return_value = 10 ** 30
        dex = DragonSwapAPI(wallet=wallet, network="sei-testnet", router_address=ROUTER)
        dex.get_quote = AsyncMock(return_value=SwapQuote(amount_out=0.01))

        await dex.execute_swap(SwapParams(token_in="USDC", token_out="ETH", amount_in=30))

        assert wallet.encode_call.call_args.args[2] == "swapExactTokensForTokens"
        assert wallet.send_transaction.await_count == 1

    @pytest.mark.asyncio
    async def test_token_swap_approves_first(self, wallet):
        """Missing allowance sends an approval before the swap"""
        wallet.read_contract.return_value = 0
        dex = DragonSwapAPI(wallet=wallet, network="sei-testnet", router_address=ROUTER)
        dex.get_quote = AsyncMock(return_value=SwapQuote(amount_out=0.01))

        await dex.execute_swap(SwapParams(token_in="USDC", token_out="ETH", amount_in=30))

        functions = [c.args[2] for c in wallet.encode_call.call_args_list]
        assert functions == ["approve", "swapExactTokensForTokens"]
        assert wallet.send_transaction.await_count == 2

    @pytest.mark.asyncio
    async def test_swap_without_quote(self, wallet):
        """No quote means no transaction"""
        dex = DragonSwapAPI(wallet=wallet, network="sei-testnet", router_address=ROUTER)
        dex.get_quote = AsyncMock(return_value=None)

        with pytest.raises(TransactionError):
            await dex.execute_swap(SwapParams(token_in="SEI", token_out="USDC", amount_in=10))


class TestPerpsAPI:
    @pytest.fixture
    def oracle(self):
        oracle = Mock()
        oracle.get_price = AsyncMock(return_value=feed("BTC", 50000.0))
        return oracle

    @pytest.mark.asyncio
    async def test_open_short(self, wallet, oracle):
        """Short orders carry size, leverage and the acceptable price"""
        perps = PerpsAPI(wallet, oracle, contract_address=ROUTER)

        tx_hash = await perps.open_position(PerpsTradeParams(symbol="BTC", size=1000, side="short", slippage_bps=100))

        assert tx_hash == "0xtx"
        _, _, function, args = wallet.encode_call.call_args.args
        assert function == "openPosition"
        market, size_delta, acceptable_price, _, _, is_long = args
        assert market == b"BTC".ljust(32, b"\0")
        assert size_delta < 0
        assert acceptable_price == pytest.approx(49500 * 10 ** 18, rel=1e-9)
        assert is_long is False

    @pytest.mark.asyncio
    async def test_open_without_price(self, wallet, oracle):
        """Orders need an oracle price"""
        oracle.get_price.return_value = None
        perps = PerpsAPI(wallet, oracle, contract_address=ROUTER)

        with pytest.raises(TransactionError):
            await perps.open_position(PerpsTradeParams(symbol="BTC", size=1000, side="long"))

    @pytest.mark.asyncio
    async def test_requires_contract(self, wallet, oracle):
        """Perps calls need a contract address"""
        perps = PerpsAPI(wallet, oracle, contract_address=None)

        with pytest.raises(ConfigurationError):
            await perps.close_position("BTC")

    @pytest.mark.asyncio
    async def test_close_full_position(self, wallet, oracle):
        """Closing uses the full open size"""
        perps = PerpsAPI(wallet, oracle, contract_address=ROUTER)

        await perps.close_position("ETH")

        _, _, function, args = wallet.encode_call.call_args.args
        assert function == "closePosition"
        assert args[1] == 0


class TestPortfolioRebalancer:
    """Allocation analysis and trade execution"""

    PORTFOLIO = {"SEI": 5000, "USDC": 2500, "ETH": 2500}

    def test_strategy_lookup(self):
        """Strategies are looked up by name"""
        assert get_strategy("conservative defi").name == "Conservative DeFi"
        assert get_strategy("nonsense").name == "Balanced Growth"
        assert get_strategy(None).name == "Balanced Growth"

    def test_analyze(self):
        """Drifted assets get buy and sell recommendations"""
        analysis = PortfolioRebalancer().analyze(self.PORTFOLIO)

        assert analysis.total_value == 10000
        assert analysis.rebalance_needed
        recs = {r.asset: r for r in analysis.recommendations}
        assert set(recs) == {"SEI", "BTC", "ATOM"}
        assert (recs["SEI"].action, recs["SEI"].amount, recs["SEI"].priority) == ("sell", pytest.approx(2500), "high")
        assert (recs["BTC"].action, recs["BTC"].amount, recs["BTC"].priority) == ("buy", pytest.approx(1500), "medium")
        held = {a.symbol: a.recommended for a in analysis.assets}
        assert held["USDC"] == "hold"

    def test_balanced_portfolio_needs_nothing(self):
        """A portfolio on target needs no trades"""
        portfolio = {"SEI": 25, "USDC": 25, "ETH": 25, "BTC": 15, "ATOM": 10}
        assert not PortfolioRebalancer().analyze(portfolio).rebalance_needed

    def test_empty_portfolio(self):
        """An empty portfolio is reported as such"""
        with pytest.raises(InvalidParametersError):
            PortfolioRebalancer().analyze({"SEI": 0})

    @pytest.mark.asyncio
    async def test_portfolio_values(self, wallet):
        """Balances are valued at oracle prices"""
        prices = {"SEI": feed("SEI", 0.5), "USDC": feed("USDC", 1.0)}
        oracle = Mock()
        oracle.get_price = AsyncMock(side_effect=lambda s: prices.get(s))
        wallet.read_contract.return_value = 5000000
        rebalancer = PortfolioRebalancer(wallet=wallet, oracle=oracle)

        values = await rebalancer.get_portfolio_values(("SEI", "USDC", "ETH"))

        assert values == {"SEI": 50.0, "USDC": 5.0, "ETH": 0.0}

    @pytest.mark.asyncio
    async def test_execute_continues_after_failure(self):
        """One failed trade does not stop the rest"""
        oracle = Mock()
        oracle.get_price = AsyncMock(return_value=feed("SEI", 0.5))
        dex = Mock()
        dex.execute_swap = AsyncMock(side_effect=["0x1", RuntimeError("reverted"), "0x3"])
        rebalancer = PortfolioRebalancer(oracle=oracle, dex=dex)

        hashes = await rebalancer.execute(rebalancer.analyze(self.PORTFOLIO))

        assert hashes == ["0x1", "0x3"]
        sell = dex.execute_swap.await_args_list[0].args[0]
        assert (sell.token_in, sell.token_out, sell.amount_in) == ("SEI", "USDC", pytest.approx(5000))
        buy = dex.execute_swap.await_args_list[1].args[0]
        assert (buy.token_in, buy.token_out) == ("USDC", "BTC")


class TestMarketData:
    """REST lookups for pools, markets and open positions"""

    @pytest.mark.asyncio
    async def test_pool_info(self, monkeypatch):
        """Pool info is read from the DEX API"""
        get_json = AsyncMock(return_value={
            "address": ROUTER, "token0": "SEI", "token1": "USDC",
            "fee": 0.003, "liquidity": "1000000", "price": "0.5",
        })
        monkeypatch.setattr("yield_delta.execution.dex.get_json", get_json)

        pool = await DragonSwapAPI(network="sei-testnet").get_pool_info("SEI", "USDC")

        assert pool.fee == 0.003
        assert get_json.await_args.args[0] == "https://api-testnet.dragonswap.app/v1/pools/sei/usdc"

    @pytest.mark.asyncio
    async def test_pool_info_not_found(self, monkeypatch):
        """Unknown pools return None"""
        error = aiohttp.ClientResponseError(request_info=Mock(), history=(), status=404)
        monkeypatch.setattr("yield_delta.execution.dex.get_json", AsyncMock(side_effect=error))

        assert await DragonSwapAPI(network="sei-testnet").get_pool_info("SEI", "USDC") is None

    @pytest.mark.asyncio
    async def test_perps_positions_and_markets(self, wallet, monkeypatch):
        """Positions and market info come from the perps API"""
        get_json = AsyncMock(return_value={"positions": [{"symbol": "ETH", "size": 2.0, "side": "long"}]})
        monkeypatch.setattr("yield_delta.execution.perps.get_json", get_json)
        perps = PerpsAPI(wallet, Mock(), contract_address=ROUTER, testnet=True)

        positions = await perps.get_positions()

        assert [(p.symbol, p.side) for p in positions] == [("ETH", "long")]
        assert get_json.await_args.args[0].endswith(f"/positions/{wallet.address}")

        get_json.side_effect = aiohttp.ClientConnectionError("down")
        assert await perps.get_market_info("ETH") is None
        assert await perps.get_positions() == []


class TestSymphonyDEX:
    """Quotes and API-built swaps"""

    @pytest.mark.asyncio
    async def test_quote(self, monkeypatch):
        """Output amounts come back in token units tagged with the exchange"""
        get_json = AsyncMock(return_value={"amountOut": "2500000", "priceImpact": "0.3", "route": ["sei", "usdc"]})
        monkeypatch.setattr("yield_delta.execution.symphony.get_json", get_json)

        quote = await SymphonyDEX(network="sei-mainnet").get_quote("SEI", "USDC", 5)

        assert (quote.amount_out, quote.price_impact, quote.exchange) == (2.5, 0.3, "symphony")
        assert quote.gas_estimate == 150000
        params = get_json.await_args.kwargs["params"]
        assert (params["amountIn"], params["chainId"]) == (str(5 * 10 ** 18), "1329")

    @pytest.mark.asyncio
    async def test_quote_failure(self, monkeypatch):
        """API errors become a missing quote"""
        monkeypatch.setattr("yield_delta.execution.symphony.get_json",
                            AsyncMock(side_effect=aiohttp.ClientConnectionError("down")))
        assert await SymphonyDEX().get_quote("SEI", "USDC", 5) is None

    @pytest.mark.asyncio
    async def test_supported_tokens_fallback(self, monkeypatch):
        """An unreachable token list falls back to WSEI"""
        monkeypatch.setattr("yield_delta.execution.symphony.get_json",
                            AsyncMock(side_effect=aiohttp.ClientConnectionError("down")))
        tokens = await SymphonyDEX().get_supported_tokens()
        assert [t["symbol"] for t in tokens.values()] == ["WSEI"]

    @pytest.mark.asyncio
    async def test_execute_swap(self, wallet, monkeypatch):
        """The API-built transaction is sent from the wallet with slippage applied"""
        monkeypatch.setattr("yield_delta.execution.symphony.get_json", AsyncMock(return_value={"amountOut": "2500000"}))
        post_json = AsyncMock(return_value={"tx": {"to": ROUTER, "data": "0xabc", "value": "0"}})
        monkeypatch.setattr("yield_delta.execution.symphony.post_json", post_json)

        tx_hash = await SymphonyDEX(wallet=wallet).execute_swap(SwapParams(token_in="SEI", token_out="USDC", amount_in=5))

        assert tx_hash == "0xtx"
        wallet.send_transaction.assert_awaited_once_with(ROUTER, value=0, data="0xabc")
        payload = post_json.await_args.args[1]
        assert payload["minAmountOut"] == "2475000"
        assert payload["recipient"] == wallet.address
        assert post_json.await_args.kwargs["idempotent"] is False

    @pytest.mark.asyncio
    async def test_execute_swap_without_transaction(self, wallet, monkeypatch):
        """A response with no transaction is a failure, nothing is sent"""
        monkeypatch.setattr("yield_delta.execution.symphony.get_json", AsyncMock(return_value={"amountOut": "2500000"}))
        monkeypatch.setattr("yield_delta.execution.symphony.post_json", AsyncMock(return_value={"error": "no route"}))

        with pytest.raises(TransactionError):
            await SymphonyDEX(wallet=wallet).execute_swap(SwapParams(token_in="SEI", token_out="USDC", amount_in=5))
        wallet.send_transaction.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_execute_requires_wallet(self):
        """Swaps need a wallet"""
        with pytest.raises(ConfigurationError):
            await SymphonyDEX().execute_swap(SwapParams(token_in="SEI", token_out="USDC", amount_in=5))


class TestDexAggregator:
    """Best-quote selection across venues"""

    @staticmethod
    def venue(amount_out=None, error=None, price_impact=0.2):
        venue = Mock()
        if error:
            venue.get_quote = AsyncMock(side_effect=error)
        else:
            venue.get_quote = AsyncMock(return_value=amount_out and SwapQuote(amount_out=amount_out,
                                                                              price_impact=price_impact))
        venue.execute_swap = AsyncMock(return_value="0xswap")
        return venue

    @pytest.mark.asyncio
    async def test_best_quote_and_savings(self):
        """The highest output wins and savings compare it to the worst"""
        aggregator = DexAggregator({"dragonswap": self.venue(100.0), "symphony": self.venue(103.0)})

        result = await aggregator.get_best_quote("SEI", "USDC", 200)

        assert result.best.exchange == "symphony"
        assert [q.exchange for q in result.quotes] == ["dragonswap", "symphony"]
        assert result.savings == pytest.approx(3.0)

    @pytest.mark.asyncio
    async def test_failed_venue_is_skipped(self):
        """One venue failing leaves the other quote with zero savings"""
        aggregator = DexAggregator({"dragonswap": self.venue(100.0),
                                    "symphony": self.venue(error=RuntimeError("timeout"))})

        result = await aggregator.get_best_quote("SEI", "USDC", 200)

        assert result.best.exchange == "dragonswap"
        assert result.savings == 0.0

    @pytest.mark.asyncio
    async def test_all_venues_fail(self):
        """No usable quote raises, while get_quote returns None"""
        aggregator = DexAggregator({"dragonswap": self.venue(None), "symphony": self.venue(error=RuntimeError("x"))})

        with pytest.raises(TransactionError, match="All DEX quotes failed"):
            await aggregator.get_best_quote("SEI", "USDC", 200)
        assert await aggregator.get_quote("SEI", "USDC", 200) is None

    @pytest.mark.asyncio
    async def test_execute_on_best_or_named_venue(self):
        """Swaps go to the best venue unless one is named"""
        dragonswap, symphony = self.venue(100.0), self.venue(101.0)
        aggregator = DexAggregator({"dragonswap": dragonswap, "symphony": symphony})
        params = SwapParams(token_in="SEI", token_out="USDC", amount_in=200)

        await aggregator.execute_swap(params)
        symphony.execute_swap.assert_awaited_once_with(params)

        await aggregator.execute_swap(params, exchange="dragonswap")
        dragonswap.execute_swap.assert_awaited_once_with(params)

        with pytest.raises(InvalidParametersError):
            await aggregator.execute_swap(params, exchange="uniswap")

    @pytest.mark.asyncio
    async def test_market_analysis(self):
        """Comparison, liquidity and recommendation text"""
        aggregator = DexAggregator({"dragonswap": self.venue(100.0, price_impact=4.0),
                                    "symphony": self.venue(99.0, price_impact=4.0)})

        analysis = await aggregator.get_market_analysis("SEI", "USDC", 200)

        assert analysis["comparison"]["symphony"]["difference"] == "-1.00%"
        assert analysis["liquidity"].startswith("Moderate liquidity")
        assert analysis["recommendation"].startswith("Moderate recommendation: dragonswap")
