"""
Strategy actions - funding arbitrage, portfolio rebalancing, IL protection and AMM optimization
"""

import re
from typing import Dict, List

from loguru import logger
from pydantic import Field

from ..amm import evaluate_amm_risk
from ..errors import OrderPlacerNotConfiguredError
from ..risk.il_protection import RiskLevel, RiskTolerance
from .base import ActionResult, ActionTool
from .parsing import parse_lp_position, parse_strategy, parse_symbol

IL_SCENARIOS = [-0.5, -0.25, 0, 0.25, 0.5, 1.0]
RISK_EMOJI = {"LOW": "🟢", "MEDIUM": "🟡", "HIGH": "🟠", "CRITICAL": "🔴"}
PAIR = re.compile(r"\b([a-z]{2,10})/([a-z]{2,10})\b", re.I)
SIZE = re.compile(r"(?:size|\$)\s*(\d+(?:\.\d+)?)", re.I)
IL_WORD = re.compile(r"\bil\b")
ESCAPE_THRESHOLD = 0.10


class FundingArbitrageTool(ActionTool):
    """Scan, execute and track funding-rate arbitrage"""

    name: str = "FUNDING_ARBITRAGE"
    description: str = "Find and execute funding rate arbitrage between exchanges, hedged on Sei"
    similes: List[str] = Field(default_factory=lambda: ["FUNDING_RATE_ARBITRAGE", "ARBITRAGE_SCAN",
                                                        "FUNDING_SCAN"])

    def matches(self, text: str) -> bool:
        return (any(w in text for w in ("funding", "arbitrage", "rate"))
                and any(w in text for w in ("scan", "opportunit", "execute", "status")))

    async def run(self, text: str) -> ActionResult:
        lowered = text.lower()
        engine = self.context.arbitrage

        if "scan" in lowered or "opportunit" in lowered:
            opportunities = await engine.scan_opportunities()
            if not opportunities:
                return ActionResult(text="No funding rate arbitrage opportunities found right now.",
                                    content={"opportunities": []})
            lines = [
                f"{i}. {o.symbol}: long {o.long_exchange} / short {o.short_exchange} - "
                f"spread {o.funding_spread * 100:.4f}%, ${o.estimated_profit:,.2f}/yr per $1000, "
                f"confidence {o.confidence:.0%}, risk {o.risk_level.value}"
                for i, o in enumerate(opportunities[:5], 1)
            ]
            return ActionResult(
                text="🎯 Funding Rate Arbitrage Opportunities\n\n" + "\n".join(lines),
                content={"opportunities": [o.as_dict() for o in opportunities]},
            )

        if "execute" in lowered:
            symbol = parse_symbol(text)
            if symbol is None:
                return ActionResult.failure("Please specify a symbol, e.g. 'execute arbitrage BTC'",
                                            error="Missing symbol")
            candidates = [o for o in await engine.scan_opportunities() if o.symbol == symbol]
            if not candidates:
                return ActionResult.failure(f"No arbitrage opportunity available for {symbol}",
                                            error="No opportunity")
            position_id = await engine.execute_arbitrage(candidates[0])
            if position_id is None:
                return ActionResult.failure(f"Failed to open the hedge leg for {symbol}",
                                            error="Arbitrage execution failed")
            position = engine.get_position(position_id)
            return ActionResult(
                text=(f"✅ Arbitrage position opened successfully: {position_id}\n"
                      f"CEX leg: {position.cex_side} on {position.cex_exchange}\n"
                      f"DEX hedge: {position.dex_side} ${position.size:,.2f}"),
                content={"position": position.as_dict()},
            )

        if "status" in lowered or "position" in lowered:
            await engine.update_position_pnl()
            active = engine.get_active_positions()
            if not active:
                return ActionResult(text="No active arbitrage positions.", content={"positions": []})
            lines = [f"{p.id}: {p.symbol} ${p.size:,.2f} PnL ${p.net_pnl:,.2f}" for p in active]
            return ActionResult(text="📊 Active Arbitrage Positions\n\n" + "\n".join(lines),
                                content={"positions": [p.as_dict() for p in active]})

        return ActionResult(
            text=("Funding arbitrage commands:\n"
                  "• 'scan funding arbitrage' - find opportunities\n"
                  "• 'execute arbitrage BTC' - open a hedged position\n"
                  "• 'arbitrage status' - check active positions"),
        )


class PortfolioRebalanceTool(ActionTool):
    """Compare holdings with an allocation strategy and optionally trade back to target"""

    name: str = "PORTFOLIO_REBALANCE"
    description: str = "Analyze and rebalance the portfolio against an allocation strategy"
    similes: List[str] = Field(default_factory=lambda: ["REBALANCE_PORTFOLIO", "PORTFOLIO_ANALYSIS",
                                                        "ASSET_ALLOCATION", "PORTFOLIO_OPTIMIZATION"])

    def matches(self, text: str) -> bool:
        return "rebalance" in text or ("portfolio" in text and ("analy" in text or "allocation" in text))

    async def run(self, text: str) -> ActionResult:
        rebalancer = self.context.rebalancer
        values = await rebalancer.get_portfolio_values()
        analysis = rebalancer.analyze(values, parse_strategy(text))
        strategy = analysis.strategy

        allocations = "\n".join(
            f"{a.symbol}: {a.current_percentage:.1f}% (Target: {a.target_percentage}%, "
            f"Deviation: {a.deviation:+.1f}%) [{a.recommended.upper()}"
            f"{f' ${a.amount:,.2f}' if a.amount else ''}]"
            for a in analysis.assets
        )
        header = (f"📊 Portfolio Analysis ({strategy.name})\n\n"
                  f"💰 Total Value: ${analysis.total_value:,.2f}\n"
                  f"⚖️ Risk Level: {strategy.risk_level}\n\n{allocations}")
        content = {
            "total_value": analysis.total_value,
            "strategy": strategy.name,
            "rebalance_needed": analysis.rebalance_needed,
            "recommendations": [vars(r) for r in analysis.recommendations],
        }

        if not analysis.rebalance_needed:
            return ActionResult(text=f"{header}\n\n✅ Portfolio is well-balanced!", content=content)

        recommendations = "\n".join(
            f"{r.priority.upper()}: {r.action.upper()} ${r.amount:,.2f} {r.asset} - {r.reason}"
            for r in analysis.recommendations
        )
        lowered = text.lower()
        if "execute" in lowered or "rebalance now" in lowered:
            hashes = await rebalancer.execute(analysis)
            content["transactions"] = hashes
            executed = "\n".join(f"{i}. {h}" for i, h in enumerate(hashes, 1)) or "none"
            return ActionResult(
                text=f"{header}\n\n🔧 {recommendations}\n\n✅ Executed {len(hashes)} transactions:\n{executed}",
                content=content,
            )
        return ActionResult(
            text=(f"{header}\n\n🔧 Rebalance Recommendations:\n{recommendations}\n\n"
                  f"💡 To execute these recommendations, send: \"rebalance portfolio execute\""),
            content=content,
        )


class ILProtectionTool(ActionTool):
    """Assess and hedge impermanent loss on an LP position"""

    name: str = "IL_PROTECTION"
    description: str = "Protect liquidity positions against impermanent loss with perpetual hedges"
    similes: List[str] = Field(default_factory=lambda: ["IMPERMANENT_LOSS_PROTECTION", "HEDGE_LP",
                                                        "PROTECT_LIQUIDITY"])

    def matches(self, text: str) -> bool:
        return ((any(w in text for w in ("protect", "hedge")) or IL_WORD.search(text) is not None)
                and any(w in text for w in ("liquidity", "lp", "position", "impermanent", "loss")))

    async def run(self, text: str) -> ActionResult:
        position = parse_lp_position(text)
        if position is None:
            return ActionResult.failure(
                "Please provide liquidity position details in format: 'protect my ETH/USDC LP worth $1000'",
                error="Unable to parse LP position")

        protector = self.context.il_protector
        metrics = protector.calculate_il_risk(position)
        summary = (f"**Position**: {position.pair}\n"
                   f"**Value**: ${position.value:,.2f}\n"
                   f"**Risk Level**: {metrics.risk_level.value} {RISK_EMOJI[metrics.risk_level.value]}\n"
                   f"**Current IL**: {metrics.current_il:.2f}%\n"
                   f"**Projected IL**: {metrics.projected_il:.2f}%")

        if metrics.risk_level is RiskLevel.LOW:
            return ActionResult(
                text=(f"📊 **IL Risk Analysis Complete**\n\n{summary}\n\n"
                      "**Recommendation**: No hedging needed. Periodic rebalancing should be sufficient."),
                content={"position": position.model_dump(), "metrics": metrics.as_dict()},
            )

        lowered = text.lower()
        tolerance = RiskTolerance.AUTO
        if "conservative" in lowered:
            tolerance = RiskTolerance.CONSERVATIVE
        elif "aggressive" in lowered:
            tolerance = RiskTolerance.AGGRESSIVE

        strategy = await protector.protect_position(position, tolerance)
        scenarios = protector.simulate_il_scenarios(position, IL_SCENARIOS)
        scenario_text = "\n".join(
            f"{s['price_change']:+.0f}%: {s['il']:.1f}% IL -> {s['hedged_il']:.1f}% (hedged)" for s in scenarios
        )
        tx_line = f"**Transaction**: {strategy.tx_hash}\n" if strategy.tx_hash else ""
        return ActionResult(
            text=(f"🛡️ **Impermanent Loss Protection**\n\n{summary}\n\n"
                  f"**Protection Strategy**: {strategy.type.value}\n"
                  f"**Provider**: {strategy.provider}\n"
                  f"**Hedge Ratio**: {strategy.hedge_ratio * 100:.1f}%\n"
                  f"**Expected IL Reduction**: {strategy.expected_il_reduction}\n"
                  f"**Estimated Cost**: {strategy.cost}\n{tx_line}\n"
                  f"**IL Scenarios** (Price Change -> Unhedged IL -> Hedged IL):\n{scenario_text}\n\n"
                  f"**Reason**: {strategy.reason}"),
            content={
                "position": position.model_dump(),
                "metrics": metrics.as_dict(),
                "strategy": strategy.as_dict(),
                "scenarios": scenarios,
            },
        )


class AMMOptimizeTool(ActionTool):
    """Track concentrated liquidity ranges and rebalance them against live prices"""

    name: str = "AMM_OPTIMIZE"
    description: str = "Optimize concentrated liquidity ranges and rebalance AMM positions"
    similes: List[str] = Field(default_factory=lambda: ["OPTIMIZE_LP", "AMM_REBALANCE", "RANGE_OPTIMIZE"])

    def matches(self, text: str) -> bool:
        return "optimize" in text and ("lp" in text or "amm" in text)

    async def _pair_price(self, pair: str):
        base, quote = pair.split("/")
        oracle = self.context.oracle
        base_feed = await oracle.get_price(base)
        quote_feed = await oracle.get_price(quote)
        if base_feed is None or quote_feed is None:
            return None
        return base_feed.price / quote_feed.price

    async def run(self, text: str) -> ActionResult:
        manager = self.context.amm
        size_match = SIZE.search(text)
        size = float(size_match.group(1)) if size_match else 0.0

        prices: Dict[str, float] = {}
        for base, quote in PAIR.findall(text):
            pair = f"{base.upper()}/{quote.upper()}"
            price = await self._pair_price(pair)
            if price is None:
                logger.warning(f"No price for {pair}, skipping")
                continue
            prices[pair] = price
            if pair not in manager.positions:
                manager.init_position(pair, price * (1 - manager.DEFAULT_WIDTH), price * (1 + manager.DEFAULT_WIDTH), size)

        for pair in manager.symbols():
            if pair not in prices:
                price = await self._pair_price(pair)
                if price is not None:
                    prices[pair] = price

        if not manager.positions:
            return ActionResult(
                text="No AMM positions tracked. Try: 'optimize my ETH/USDC LP'",
                content={"positions": []},
            )

        escaped = [pair for pair in manager.symbols()
                   if pair in prices and manager.is_out_of_band(pair, prices[pair], ESCAPE_THRESHOLD)]
        rebalanced = manager.rebalance_all(prices)
        for pair in escaped:
            manager.handle_escape(pair, prices[pair])

        orders: Dict[str, str] = {}
        for pair in rebalanced:
            manager.set_dynamic_range(pair, prices[pair])
            try:
                orders[pair] = str(await manager.place_range_order(pair))
            except OrderPlacerNotConfiguredError:
                orders[pair] = "not placed: no order placer configured"

        report = evaluate_amm_risk(manager)
        lines = [
            f"{r['symbol']}: range [{r['range']['min']:.2f}, {r['range']['max']:.2f}], "
            f"rebalances {r['analytics']['rebalances']}, risk {r['risk_level']}"
            for r in report
        ]
        lines += [f"{pair}: range order {result}" for pair, result in orders.items()]
        lines += [f"{pair}: price escaped the range, options hedge fallback activated" for pair in escaped]
        return ActionResult(
            text="AMM optimization complete.\n" + "\n".join(lines),
            content={"rebalanced": rebalanced, "escaped": escaped, "orders": orders, "positions": report},
        )
