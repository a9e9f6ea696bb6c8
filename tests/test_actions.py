"""
Chat action tests: message parsing, validation, handlers and agent dispatch
"""

import pytest
from unittest.mock import AsyncMock, Mock

from spoon_ai.chat import ChatBot

from yield_delta import YieldDeltaPlugin
from yield_delta.agents.context import YieldDeltaContext
from yield_delta.agents.parsing import (parse_lp_position, parse_perps, parse_strategy, parse_swap,
                                        parse_symbol, parse_transfer)
from yield_delta.agents.strategies import (AMMOptimizeTool, FundingArbitrageTool, ILProtectionTool,
                                           PortfolioRebalanceTool)
from yield_delta.agents.trading import DragonSwapTool, PerpsTool, TransferTool
from yield_delta.agents.yield_delta_agent import YieldDeltaAgent, build_actions
from yield_delta.data.cache import MemoryCache
from yield_delta.data.config import SeiConfig
from yield_delta.data.models import FundingRate, PriceFeed, SwapQuote
from yield_delta.execution import PortfolioRebalancer, TransferAction
from yield_delta.execution.routing import HedgeResult
from yield_delta.risk import FundingArbitrageEngine, ImpermanentLossProtector

EVM_ADDRESS = "0x" + "ab" * 20


def feed(symbol, price):
    return PriceFeed(symbol=symbol, price=price, source="test", confidence=1.0)


@pytest.fixture
def context():
    return YieldDeltaContext(config=SeiConfig(sei_rpc_url="https://rpc.test"), cache=MemoryCache())


@pytest.fixture
def wallet():
    wallet = Mock()
    wallet.address = "0x" + "cd" * 20
    wallet.chain = Mock(name="chain", chain_id=713715)
    wallet.get_balance = AsyncMock(return_value=100.0)
    wallet.send_transaction = AsyncMock(return_value="0xtransfer")
    return wallet


class TestParsing:
    """Parameter extraction from chat messages"""

    def test_transfer(self):
        """Transfer requests parse amount and recipient"""
        params = parse_transfer(f"send 12.5 SEI to {EVM_ADDRESS}")
        assert (params.amount, params.to_address) == (12.5, EVM_ADDRESS)
        assert parse_transfer("send some SEI to a friend") is None

    def test_transfer_to_sei_address(self):
        """Bech32 recipients are accepted"""
        address = "sei1" + "a" * 38
        assert parse_transfer(f"transfer 3 sei to {address}").to_address == address

    def test_swap(self):
        """Swap requests parse tokens, amount and slippage"""
        params = parse_swap("swap 10 SEI for USDC on DragonSwap with 0.5% slippage")
        assert (params.token_in, params.token_out, params.amount_in, params.slippage_bps) == ("SEI", "USDC", 10, 50)
        assert parse_swap("trade 5 usdc to eth").slippage_bps == 100
        assert parse_swap("swap SEI for USDC") is None

    def test_perps_open(self):
        """Open requests parse side, size and leverage"""
        params = parse_perps("open short ETH 250.5 5x")
        assert (params.symbol, params.side, params.size, params.leverage, params.reduce_only) == \
            ("ETH", "short", 250.5, 5, False)

    def test_perps_close(self):
        """Close requests parse the symbol"""
        params = parse_perps("close long BTC")
        assert params.symbol == "BTC"
        assert params.reduce_only is True
        assert parse_perps("close my SOL position").symbol == "SOL"
        assert parse_perps("what is a perp?") is None

    def test_lp_position(self):
        """LP descriptions parse the pair and value"""
        position = parse_lp_position("protect my ETH/USDC LP worth $5,000")
        assert position.pair == "ETH/USDC"
        assert position.value == 5000
        assert position.base_amount == position.quote_amount == 2500
        assert parse_lp_position("protect me") is None

    def test_symbol_and_strategy(self):
        """Symbols and strategy names are picked out of text"""
        assert parse_symbol("execute arbitrage on btc") == "BTC"
        assert parse_symbol("execute arbitrage") is None
        assert parse_strategy("rebalance with strategy: Conservative DeFi") == "Conservative DeFi"


class TestActionValidation:
    """Each message reaches exactly the intended action"""

    @pytest.mark.parametrize("message,expected", [
        (f"send 10 SEI to {EVM_ADDRESS}", "SEI_TOKEN_TRANSFER"),
        ("swap 10 SEI for USDC on DragonSwap", "DRAGONSWAP_TRADE"),
        ("open long BTC 1000 10x", "PERPS_TRADE"),
        ("scan funding arbitrage opportunities", "FUNDING_ARBITRAGE"),
        ("protect my ETH/USDC LP worth $5,000", "IL_PROTECTION"),
        ("optimize my ETH/USDC LP", "AMM_OPTIMIZE"),
        ("analyze my portfolio allocation", "PORTFOLIO_REBALANCE"),
    ])
    def test_first_matching_action(self, context, message, expected):
        """Dispatch picks the first matching action"""
        matched = [a.name for a in build_actions(context) if a.validate_message(message)]
        assert matched[0] == expected

    def test_unrelated_message(self, context):
        """Unrelated text matches nothing"""
        assert not any(a.validate_message("hello, how are you?") for a in build_actions(context))

    def test_transfer_needs_address(self, context):
        """Transfers without an address do not match"""
        assert not TransferTool(context=context).validate_message("send 10 SEI to my friend")

    @pytest.mark.parametrize("message", [
        "close my BTC position until it stabilizes",
        "open long ETH position, it will pump",
    ])
    def test_words_containing_il_route_to_perps(self, context, message):
        """Words that merely contain "il" do not trigger IL protection"""
        assert not ILProtectionTool(context=context).validate_message(message)
        matched = [a.name for a in build_actions(context) if a.validate_message(message)]
        assert matched[0] == "PERPS_TRADE"

    def test_il_as_a_word(self, context):
        """The bare abbreviation still selects IL protection"""
        assert ILProtectionTool(context=context).validate_message("what is the il on my lp position")


class TestTradingActions:
    @pytest.mark.asyncio
    async def test_transfer(self, context, wallet):
        """Transfer requests parse amount and recipient"""
        context.transfers = TransferAction(wallet)
        callback = Mock()

        result = await TransferTool(context=context).handle(f"send 10 SEI to {EVM_ADDRESS}", callback)

        assert result.success
        assert "Successfully transferred 10.0 SEI" in result.text
        assert result.content["hash"] == "0xtransfer"
        callback.assert_called_once_with(result)

    @pytest.mark.asyncio
    async def test_transfer_insufficient_balance(self, context, wallet):
        """Transfers above the balance fail before sending"""
        wallet.get_balance.return_value = 5.0
        context.transfers = TransferAction(wallet)

        result = await TransferTool(context=context).handle(f"send 10 SEI to {EVM_ADDRESS}")

        assert not result.success
        assert result.error == "Insufficient funds"
        wallet.send_transaction.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_transfer_unparseable(self, context):
        """Unparseable transfers report usage"""
        result = await TransferTool(context=context).handle("send SEI to 0x1234")

        assert not result.success
        assert result.error == "Unable to parse transfer parameters"

    @pytest.mark.asyncio
    async def test_errors_become_failed_results(self, context, wallet):
        """Client errors surface as failed results"""
        wallet.get_balance.side_effect = RuntimeError("rpc down")
        context.transfers = TransferAction(wallet)
        callback = AsyncMock()

        result = await TransferTool(context=context).handle(f"send 10 SEI to {EVM_ADDRESS}", callback)

        assert not result.success
        assert result.error == "rpc down"
        callback.assert_awaited_once_with(result)

    @pytest.mark.asyncio
    async def test_swap(self, context):
        """Swaps quote first and report the hash"""
        dex = Mock()
        dex.get_quote = AsyncMock(return_value=SwapQuote(amount_out=4.2, price_impact=0.1))
        dex.execute_swap = AsyncMock(return_value="0xswap")
        context.dex = dex

        result = await DragonSwapTool(context=context).handle("swap 10 SEI for USDC on DragonSwap")

        assert result.success
        assert result.content["tx_hash"] == "0xswap"
        assert "Successfully swapped 10.0 SEI" in result.text

    @pytest.mark.asyncio
    async def test_swap_without_quote(self, context):
        """No quote is reported as a failure"""
        dex = Mock()
        dex.get_quote = AsyncMock(return_value=None)
        dex.execute_swap = AsyncMock()
        context.dex = dex

        result = await DragonSwapTool(context=context).handle("swap 10 SEI for USDC on DragonSwap")

        assert not result.success
        dex.execute_swap.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_perps_open_and_close(self, context):
        """Perps open and close report their hashes"""
        perps = Mock()
        perps.open_position = AsyncMock(return_value="0xopen")
        perps.close_position = AsyncMock(return_value="0xclose")
        context.perps = perps
        tool = PerpsTool(context=context)

        opened = await tool.handle("open long BTC 1000 10x")
        closed = await tool.handle("close BTC position")

        assert opened.content["action"] == "open"
        assert "at 10x" in opened.text
        assert closed.content == {"tx_hash": "0xclose", "symbol": "BTC", "action": "close"}
        perps.close_position.assert_awaited_once_with("BTC")


class TestStrategyActions:
    @pytest.fixture
    def engine(self):
        source = Mock()
        source.get_funding_rates = AsyncMock(return_value=[
            FundingRate(symbol="BTC", exchange="Binance", rate=0.0001),
            FundingRate(symbol="BTC", exchange="Bybit", rate=0.0005),
        ])
        dex = Mock()
        dex.get_quote = AsyncMock(return_value=SwapQuote(amount_out=0.08))
        dex.execute_swap = AsyncMock(return_value="0xhedge")
        return FundingArbitrageEngine(source, dex=dex, symbols=["BTC"], clock=lambda: 1000.0)

    @pytest.mark.asyncio
    async def test_arbitrage_scan(self, context, engine):
        """Scans list the current opportunities"""
        context.arbitrage = engine

        result = await FundingArbitrageTool(context=context).handle("scan funding arbitrage opportunities")

        assert "long Binance / short Bybit" in result.text
        assert result.content["opportunities"][0]["hedge_action"] == "long_dex"

    @pytest.mark.asyncio
    async def test_arbitrage_execute_and_status(self, context, engine):
        """Executed arbitrage shows up in status"""
        context.arbitrage = engine
        tool = FundingArbitrageTool(context=context)

        executed = await tool.handle("execute funding arbitrage BTC")
        status = await tool.handle("funding arbitrage status")

        assert executed.success
        assert executed.content["position"]["id"] == "BTC_1000000"
        assert "CEX leg: short on Bybit" in executed.text
        assert status.content["positions"][0]["id"] == "BTC_1000000"

    @pytest.mark.asyncio
    async def test_arbitrage_execute_without_symbol(self, context, engine):
        """Execute needs a symbol"""
        context.arbitrage = engine

        result = await FundingArbitrageTool(context=context).handle("execute funding arbitrage")

        assert result.error == "Missing symbol"

    @pytest.mark.asyncio
    async def test_il_protection_hedges(self, context):
        """High-risk positions are hedged"""
        router = Mock()
        router.execute_geographic_hedge = AsyncMock(return_value=HedgeResult(
            success=True, provider="Coinbase Advanced", hedge_ratio=0.75,
            expected_il_reduction="~65% IL protection", tx_hash="order-1"))
        context.il_protector = ImpermanentLossProtector(router)

        result = await ILProtectionTool(context=context).handle("protect my ETH/USDC LP worth $5,000")

        assert result.success
        assert result.content["strategy"]["type"] == "PERP_HEDGE"
        assert len(result.content["scenarios"]) == 6
        assert "order-1" in result.text

    @pytest.mark.asyncio
    async def test_il_protection_low_risk(self, context):
        """Low-risk positions are only rebalanced"""
        router = Mock()
        router.execute_geographic_hedge = AsyncMock()
        context.il_protector = ImpermanentLossProtector(router)

        result = await ILProtectionTool(context=context).handle("protect my USDT/USDC LP worth $1000")

        assert "No hedging needed" in result.text
        router.execute_geographic_hedge.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_amm_optimize(self, context):
        """Out-of-band pairs are rebalanced and escapes hedged"""
        prices = {"ETH": feed("ETH", 2000.0), "USDC": feed("USDC", 1.0)}
        oracle = Mock()
        oracle.get_price = AsyncMock(side_effect=lambda s: prices.get(s))
        context.oracle = oracle
        tool = AMMOptimizeTool(context=context)

        first = await tool.handle("optimize my ETH/USDC LP size 1000")
        assert first.content["rebalanced"] == []
        assert context.amm.get_position("ETH/USDC").size == 1000

        prices["ETH"] = feed("ETH", 2500.0)
        second = await tool.handle("optimize amm")

        assert second.content["rebalanced"] == ["ETH/USDC"]
        position = context.amm.get_position("ETH/USDC")
        assert position.range.min == pytest.approx(2375)
        assert position.range.max == pytest.approx(2625)
        assert context.amm.get_analytics("ETH/USDC")["rebalances"] == 1
        assert second.content["escaped"] == ["ETH/USDC"]
        assert second.content["orders"] == {"ETH/USDC": "not placed: no order placer configured"}
        assert "options hedge fallback" in second.text

    @pytest.mark.asyncio
    async def test_amm_optimize_places_range_order(self):
        """A rebalanced range is re-centred and sent to the order placer"""
        placer = Mock()
        placer.place_range_order = AsyncMock(return_value="order-1")
        context = YieldDeltaContext(config=SeiConfig(sei_rpc_url="https://rpc.test"), cache=MemoryCache(),
                                    order_placer=placer)
        prices = {"ETH": feed("ETH", 2000.0), "USDC": feed("USDC", 1.0)}
        oracle = Mock()
        oracle.get_price = AsyncMock(side_effect=lambda s: prices.get(s))
        context.oracle = oracle
        tool = AMMOptimizeTool(context=context)
        await tool.handle("optimize my ETH/USDC LP size 1000")

        prices["ETH"] = feed("ETH", 2150.0)
        result = await tool.handle("optimize amm")

        assert result.content["rebalanced"] == ["ETH/USDC"]
        assert result.content["escaped"] == []
        assert result.content["orders"] == {"ETH/USDC": "order-1"}
        symbol, price_range, size = placer.place_range_order.await_args.args
        assert (symbol, size) == ("ETH/USDC", 1000)
        assert (price_range.min, price_range.max) == (pytest.approx(2042.5), pytest.approx(2257.5))

    @pytest.mark.asyncio
    async def test_amm_optimize_without_positions(self, context):
        """With nothing tracked the optimizer reports no positions"""
        result = await AMMOptimizeTool(context=context).handle("optimize amm")
        assert result.content == {"positions": []}

    @pytest.mark.asyncio
    async def test_portfolio_analysis_and_execution(self, context):
        """Portfolio analysis then rebalance execution"""
        oracle = Mock()
        oracle.get_price = AsyncMock(return_value=feed("SEI", 0.5))
        dex = Mock()
        dex.execute_swap = AsyncMock(return_value="0xrebalance")
        rebalancer = PortfolioRebalancer(oracle=oracle, dex=dex)
        rebalancer.get_portfolio_values = AsyncMock(return_value={"SEI": 5000, "USDC": 2500, "ETH": 2500})
        context.rebalancer = rebalancer
        tool = PortfolioRebalanceTool(context=context)

        analysis = await tool.handle("analyze my portfolio allocation")
        assert analysis.content["rebalance_needed"] is True
        assert "rebalance portfolio execute" in analysis.text
        dex.execute_swap.assert_not_awaited()

        executed = await tool.handle("rebalance portfolio execute")
        assert executed.content["transactions"] == ["0xrebalance"] * 3


class TestAgentAndPlugin:
    def test_plugin_exposes_actions(self, context):
        """The plugin registers every action"""
        plugin = YieldDeltaPlugin(context)

        assert plugin.name == "yield-delta"
        assert [a.name for a in plugin.actions] == [
            "SEI_TOKEN_TRANSFER", "DRAGONSWAP_TRADE", "FUNDING_ARBITRAGE", "IL_PROTECTION",
            "AMM_OPTIMIZE", "PORTFOLIO_REBALANCE", "PERPS_TRADE",
        ]
        assert all(a.context is context for a in plugin.actions)

    def test_plugin_amm_evaluator(self, context):
        """The plugin reports AMM risk"""
        context.amm.init_position("ETH/USDC", 1800, 2200, 1000)
        report = YieldDeltaPlugin(context).evaluate_amm()
        assert report[0]["risk_level"] == "LOW"

    @pytest.mark.asyncio
    async def test_agent_dispatch(self, context):
        """The agent answers directly from the matching action"""
        perps = Mock()
        perps.close_position = AsyncMock(return_value="0xclose")
        context.perps = perps
        agent = YieldDeltaAgent.with_context(context, llm=Mock(spec=ChatBot))

        result = await agent.dispatch("close ETH position")

        assert agent.name == "yield_delta_agent"
        assert len(agent.actions()) == 7
        assert result.content["tx_hash"] == "0xclose"
        assert await agent.dispatch("tell me a joke") is None

    @pytest.mark.asyncio
    async def test_agent_dispatch_perps_with_until(self, context):
        """A close request mentioning "until" reaches the perps action"""
        perps = Mock()
        perps.close_position = AsyncMock(return_value="0xclose")
        context.perps = perps
        agent = YieldDeltaAgent.with_context(context, llm=Mock(spec=ChatBot))

        result = await agent.dispatch("close my BTC position until it stabilizes")

        assert result.content == {"tx_hash": "0xclose", "symbol": "BTC", "action": "close"}
