from typing import Any, Dict, List

from .manager import AMMLayerManager

MAX_REBALANCES = 2
MAX_SLIPPAGE = 1.0


def evaluate_amm_risk(manager: AMMLayerManager) -> List[Dict[str, Any]]:
    """HIGH once a position has rebalanced more than twice or slipped more than 1 unit"""
    report = []
    for symbol, position in manager.positions.items():
        analytics = position.analytics
        high = analytics.rebalances > MAX_REBALANCES or analytics.slippage > MAX_SLIPPAGE
        report.append({
            "symbol": symbol,
            "risk_level": "HIGH" if high else "LOW",
            "analytics": analytics.as_dict(),
            "range": position.range.as_dict(),
        })
    return report
