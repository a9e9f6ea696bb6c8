"""
Yield Delta CLI - prices, funding arbitrage, IL analysis and agent chat for Sei
"""
import asyncio
import os
import sys
import warnings
from pathlib import Path

import click
from loguru import logger
from rich.console import Console
from rich.panel import Panel
from rich.prompt import Prompt
from rich.table import Table

from ..agents.context import YieldDeltaContext
from ..agents.yield_delta_agent import YieldDeltaAgent
from ..data.config import ConfigManager
from ..data.models import LPPosition
from ..errors import YieldDeltaError
from ..risk.il_protection import RiskTolerance

warnings.filterwarnings("ignore", category=DeprecationWarning, module=r"spoon_ai\.tools\.base")

console = Console()

RISK_STYLE = {"LOW": "green", "MEDIUM": "yellow", "HIGH": "red", "CRITICAL": "bold red"}
LLM_PROVIDERS = {
    "openai": ("OPENAI_API_KEY", "gpt-4o-mini"),
    "anthropic": ("ANTHROPIC_API_KEY", "claude-3-5-sonnet-20241022"),
}


def setup_logging():
    logger.remove()
    log_level = os.getenv("LOG_LEVEL", "INFO").upper()
    if os.getenv("DEBUG", "false").lower() == "true":
        log_level = "DEBUG"
    logger.add(
        sys.stderr,
        format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan> - <level>{message}</level>",
        level=log_level,
        colorize=True
    )
    log_dir = Path("logs"); log_dir.mkdir(exist_ok=True)
    logger.add(
        log_dir / "yield_delta_{time:YYYY-MM-DD}.log",
        rotation="1 day",
        retention="30 days",
        format="{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {name}:{function}:{line} - {message}",
        level="DEBUG"
    )
    logger.debug("Logging system configured")


def llm_configured() -> bool:
    return bool(os.getenv("OPENAI_API_KEY") or os.getenv("ANTHROPIC_API_KEY"))


def make_chatbot():
    """spoon_ai ChatBot for the configured provider, else None"""
    provider = (os.getenv("LLM_PROVIDER") or ("openai" if os.getenv("OPENAI_API_KEY") else "anthropic")).lower()
    if provider not in LLM_PROVIDERS:
        logger.warning(f"Unsupported LLM_PROVIDER {provider}; chat will route by action validators")
        return None
    key_name, default_model = LLM_PROVIDERS[provider]
    api_key = (os.getenv(key_name) or "").strip()
    if not api_key:
        logger.warning(f"No {key_name}; chat will route by action validators")
        return None
    from spoon_ai.chat import ChatBot
    model = os.getenv("LLM_MODEL", default_model)
    logger.info(f"Spoon ChatBot ready ({provider}:{model})")
    return ChatBot(llm_provider=provider, model_name=model, api_key=api_key)


def _position(base: str, quote: str, value: float) -> LPPosition:
    return LPPosition(base_token=base.upper(), quote_token=quote.upper(), value=value,
                      base_amount=value / 2, quote_amount=value / 2)


def _run(coro, what: str):
    try:
        asyncio.run(coro)
    except YieldDeltaError as e:
        console.print(f"[red]{what} failed: {e}[/red]")
        sys.exit(1)


@click.group()
@click.option('--config', '-c', help='Path to configuration file')
@click.option('--debug', is_flag=True, help='Enable debug logging')
@click.pass_context
def cli(ctx, config, debug):
    """Yield Delta - DeFi agent for the Sei network"""
    if debug:
        os.environ["DEBUG"] = "true"
    setup_logging()
    ctx.ensure_object(dict)
    ctx.obj['context'] = YieldDeltaContext(config_manager=ConfigManager(config) if config else None)


@cli.command()
@click.argument('symbols', nargs=-1, required=True)
@click.pass_context
def price(ctx, symbols):
    """Show oracle prices for SYMBOLS"""
    context: YieldDeltaContext = ctx.obj['context']

    async def run_price():
        table = Table(title="💱 Sei Oracle Prices")
        table.add_column("Symbol", style="cyan")
        table.add_column("Price", justify="right")
        table.add_column("Source", style="dim")
        table.add_column("Confidence", justify="right")
        for symbol in symbols:
            feed = await context.oracle.get_price(symbol)
            if feed is None:
                table.add_row(symbol.upper(), "[red]unavailable[/red]", "-", "-")
            else:
                table.add_row(feed.symbol, f"${feed.price:,.4f}", feed.source, f"{feed.confidence:.0%}")
        console.print(table)

    _run(run_price(), "Price lookup")


@cli.command()
@click.argument('symbol')
@click.pass_context
def funding(ctx, symbol):
    """Show funding rates for SYMBOL across perpetual venues"""
    context: YieldDeltaContext = ctx.obj['context']

    async def run_funding():
        rates = await context.funding_rates.get_funding_rates(symbol)
        if not rates:
            console.print(f"[yellow]No funding rate data for {symbol.upper()}[/yellow]")
            return
        table = Table(title=f"📈 {symbol.upper()} Funding Rates")
        table.add_column("Exchange", style="cyan")
        table.add_column("Rate", justify="right")
        table.add_column("Interval", justify="right")
        table.add_column("Annualized", justify="right")
        for rate in sorted(rates, key=lambda r: r.annualized, reverse=True):
            color = "green" if rate.rate >= 0 else "red"
            table.add_row(rate.exchange, f"[{color}]{rate.rate * 100:.4f}%[/{color}]",
                          f"{rate.interval_hours:g}h", f"{rate.annualized * 100:.2f}%")
        console.print(table)

    _run(run_funding(), "Funding rate lookup")


@cli.command()
@click.argument('token_in')
@click.argument('token_out')
@click.argument('amount', type=float)
@click.pass_context
def quote(ctx, token_in, token_out, amount):
    """Compare DragonSwap and Symphony quotes for a swap"""
    context: YieldDeltaContext = ctx.obj['context']

    async def run_quote():
        analysis = await context.aggregator.get_market_analysis(token_in, token_out, amount)
        table = Table(title=f"💱 {amount:g} {token_in.upper()} -> {token_out.upper()}")
        table.add_column("Exchange", style="cyan")
        table.add_column("Amount Out", justify="right")
        table.add_column("vs Best", justify="right")
        for exchange, row in analysis["comparison"].items():
            table.add_row(exchange, f"{row['amount_out']:.6f}", row["difference"])
        console.print(table)
        console.print(f"[green]{analysis['recommendation']}[/green]")
        console.print(f"[dim]{analysis['liquidity']}[/dim]")

    _run(run_quote(), "Quote")


@cli.command()
@click.option('--execute', '-x', 'execute_symbol', help='Open the best opportunity for this symbol')
@click.pass_context
def arbitrage(ctx, execute_symbol):
    """Scan funding-rate arbitrage opportunities"""
    context: YieldDeltaContext = ctx.obj['context']

    async def run_arbitrage():
        engine = context.arbitrage
        opportunities = await engine.scan_opportunities()
        if not opportunities:
            console.print("[yellow]No funding rate arbitrage opportunities found[/yellow]")
            return
        table = Table(title="🎯 Funding Arbitrage Opportunities")
        table.add_column("Symbol", style="cyan")
        table.add_column("Long")
        table.add_column("Short")
        table.add_column("Spread (8h)", justify="right")
        table.add_column("$/yr per $1000", justify="right")
        table.add_column("Confidence", justify="right")
        table.add_column("Risk")
        for o in opportunities:
            style = RISK_STYLE[o.risk_level.value]
            table.add_row(o.symbol, o.long_exchange, o.short_exchange, f"{o.funding_spread * 100:.4f}%",
                          f"{o.estimated_profit:,.2f}", f"{o.confidence:.0%}",
                          f"[{style}]{o.risk_level.value}[/{style}]")
        console.print(table)

        if execute_symbol:
            candidates = [o for o in opportunities if o.symbol == execute_symbol.upper()]
            if not candidates:
                console.print(f"[yellow]No opportunity for {execute_symbol.upper()}[/yellow]")
                return
            position_id = await engine.execute_arbitrage(candidates[0])
            if position_id:
                console.print(f"[green]✅ Arbitrage position opened: {position_id}[/green]")
            else:
                console.print("[red]Failed to open the hedge leg[/red]")

    _run(run_arbitrage(), "Arbitrage scan")


@cli.command()
@click.argument('base')
@click.argument('quote')
@click.argument('value', type=float)
@click.option('--protect', is_flag=True, help='Execute the selected protection strategy')
@click.option('--tolerance', type=click.Choice([t.value for t in RiskTolerance], case_sensitive=False),
              default=RiskTolerance.AUTO.value, help='Strategy override')
@click.pass_context
def il(ctx, base, quote, value, protect, tolerance):
    """Assess impermanent-loss risk for a BASE/QUOTE position worth VALUE USD"""
    context: YieldDeltaContext = ctx.obj['context']
    position = _position(base, quote, value)

    async def run_il():
        protector = context.il_protector
        metrics = protector.calculate_il_risk(position)
        style = RISK_STYLE[metrics.risk_level.value]
        console.print(Panel(
            f"Volatility: {metrics.volatility:.2f}\n"
            f"Correlation: {metrics.correlation:.2f}\n"
            f"Current IL: {metrics.current_il:.2f}%\n"
            f"Projected IL: {metrics.projected_il:.2f}%\n"
            f"Risk Level: [{style}]{metrics.risk_level.value}[/{style}]",
            title=f"🛡️ {position.pair} ${value:,.2f}"))
        if protect:
            strategy = await protector.protect_position(position, RiskTolerance(tolerance.upper()))
            console.print(f"Strategy: [bold]{strategy.type.value}[/bold] via {strategy.provider}, "
                          f"hedge ratio {strategy.hedge_ratio:.1%}, expected reduction "
                          f"{strategy.expected_il_reduction}, cost {strategy.cost}")
            if strategy.tx_hash:
                console.print(f"Transaction: {strategy.tx_hash}")

    _run(run_il(), "IL analysis")


@cli.command()
@click.argument('base')
@click.argument('quote')
@click.argument('value', type=float)
@click.option('--change', '-p', 'changes', type=float, multiple=True,
              help='Relative price change, e.g. -0.25 (repeatable)')
@click.pass_context
def simulate(ctx, base, quote, value, changes):
    """Simulate impermanent loss for price changes"""
    context: YieldDeltaContext = ctx.obj['context']
    changes = list(changes) or [-0.5, -0.25, 0, 0.25, 0.5, 1.0]
    scenarios = context.il_protector.simulate_il_scenarios(_position(base, quote, value), changes)
    table = Table(title=f"📉 IL Scenarios {base.upper()}/{quote.upper()}")
    table.add_column("Price Change", justify="right")
    table.add_column("Unhedged IL", justify="right")
    table.add_column("Hedged IL", justify="right")
    table.add_column("Unhedged Loss", justify="right")
    for s in scenarios:
        table.add_row(f"{s['price_change']:+.0f}%", f"{s['il']:.2f}%", f"{s['hedged_il']:.2f}%",
                      f"${value * s['il'] / 100:,.2f}")
    console.print(table)


@cli.command()
@click.argument('message', required=False)
@click.option('--no-llm', is_flag=True, help='Route messages by action validators only')
@click.pass_context
def chat(ctx, message, no_llm):
    """Talk to the agent; interactive when MESSAGE is omitted"""
    context: YieldDeltaContext = ctx.obj['context']

    async def respond(agent: YieldDeltaAgent, text: str, use_llm: bool):
        if use_llm:
            reply = await agent.run(text)
            console.print(Panel(str(reply), title="🤖 Agent"))
            return
        result = await agent.dispatch(text)
        if result is None:
            console.print("[yellow]No action matched that request[/yellow]")
        elif result.success:
            console.print(Panel(result.text, title="✅ Result"))
        else:
            console.print(Panel(result.text, title="❌ Error", style="red"))

    async def run_chat():
        llm = None if no_llm else make_chatbot()
        agent = YieldDeltaAgent.with_context(context, **({"llm": llm} if llm else {}))
        if message:
            await respond(agent, message, llm is not None)
            return
        console.print("[bold blue]Yield Delta chat[/bold blue] - type 'exit' to quit")
        while True:
            text = Prompt.ask("[cyan]you[/cyan]")
            if text.strip().lower() in ("exit", "quit"):
                break
            await respond(agent, text, llm is not None)

    _run(run_chat(), "Chat")


@cli.command()
@click.pass_context
def status(ctx):
    """Show configuration and provider status"""
    context: YieldDeltaContext = ctx.obj['context']
    table = Table(title="🏥 Yield Delta Status")
    table.add_column("Component", style="cyan")
    table.add_column("Status", style="white")
    table.add_column("Details", style="dim")
    try:
        config = context.config
    except YieldDeltaError as e:
        table.add_row("Configuration", "[red]INVALID[/red]", str(e))
        console.print(table)
        return

    table.add_row("Configuration", "[green]VALID[/green]", config.sei_network)
    table.add_row("Network", "[green]CONFIGURED[/green]", context.describe_network())
    if context.has_wallet:
        table.add_row("Wallet", "[green]CONFIGURED[/green]", context.wallet.address)
    else:
        table.add_row("Wallet", "[yellow]READ-ONLY[/yellow]", "Set SEI_PRIVATE_KEY to trade")
    for name, value in (("DragonSwap router", config.dragonswap_router_address),
                        ("Perps contract", config.perps_contract_address)):
        if value:
            table.add_row(name, "[green]CONFIGURED[/green]", value)
        else:
            table.add_row(name, "[yellow]NOT CONFIGURED[/yellow]", "Trading through it is disabled")

    router = context.router
    try:
        caps = router.get_provider_capabilities()
        table.add_row("Hedge provider", "[green]SELECTED[/green]",
                      f"{caps['name']} ({caps['geography']}, {caps['preference']})")
    except YieldDeltaError as e:
        table.add_row("Hedge provider", "[red]UNAVAILABLE[/red]", str(e))
    table.add_row("Available providers", "-", ", ".join(router.get_available_providers()))
    table.add_row("LLM", "[green]CONFIGURED[/green]" if llm_configured() else "[yellow]NONE[/yellow]",
                  "Chat falls back to action validators without a key")
    console.print(table)


@cli.command()
@click.pass_context
def health(ctx):
    """Check oracle and funding-venue connectivity"""
    context: YieldDeltaContext = ctx.obj['context']

    async def run_health():
        results = await context.oracle.health()
        table = Table(title="📡 Data Source Health")
        table.add_column("Source", style="cyan")
        table.add_column("Status", style="white")
        table.add_column("Details", style="dim")
        for name, result in results.items():
            status = "[green]OK[/green]" if result.get("ok") else "[red]DOWN[/red]"
            table.add_row(name, status, result.get("error", ""))
        console.print(table)

    _run(run_health(), "Health check")


def main():
    try:
        cli()
    except KeyboardInterrupt:
        console.print("\n[yellow]Operation cancelled by user[/yellow]")
        sys.exit(0)
    except Exception as e:
        logger.error(f"Unexpected error: {e}")
        console.print(f"[red]Error: {e}[/red]")
        sys.exit(1)


if __name__ == "__main__":
    main()
