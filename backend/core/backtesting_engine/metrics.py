# core/backtesting_engine/metrics.py
"""
Performance metrics calculation for backtesting
"""
import statistics
from typing import Any, Dict, List, Sequence

from .position import Trade


class PerformanceMetrics:
    """
    Reduce a ledger of closed trades into summary figures
    """

    def calculate_summary(self, trades: Sequence[Trade], max_drawdown: float) -> Dict[str, Any]:
        """Headline statistics of a completed run"""
        total_trades = len(trades)
        winners = [t for t in trades if (t.profit_percent or 0) > 0]
        losers = [t for t in trades if (t.profit_percent or 0) <= 0]

        winning_trades = len(winners)
        gross_profit = sum(t.profit or 0 for t in winners)
        gross_loss = abs(sum(t.profit or 0 for t in losers))

        return {
            "total_trades": total_trades,
            "winning_trades": winning_trades,
            "losing_trades": total_trades - winning_trades,
            "win_rate": winning_trades / total_trades if total_trades > 0 else 0.0,
            # Reported as 0, not infinity, when nothing was lost
            "profit_factor": gross_profit / gross_loss if gross_loss > 0 else 0.0,
            "net_profit": sum(t.profit or 0 for t in trades),
            "max_drawdown": max_drawdown,
        }

    def calculate_trade_statistics(self, trades: Sequence[Trade], initial_capital: float) -> Dict[str, Any]:
        """Supplementary per-trade statistics"""
        if not trades:
            return self._empty_statistics()

        returns = [t.profit_percent or 0 for t in trades]
        wins = [t.profit or 0 for t in trades if (t.profit_percent or 0) > 0]
        losses = [t.profit or 0 for t in trades if (t.profit_percent or 0) <= 0]
        net_profit = sum(t.profit or 0 for t in trades)

        return {
            "avg_profit_percent": statistics.mean(returns),
            "best_trade_percent": max(returns),
            "worst_trade_percent": min(returns),
            "avg_win": statistics.mean(wins) if wins else 0.0,
            "avg_loss": statistics.mean(losses) if losses else 0.0,
            "gross_profit": sum(wins),
            "gross_loss": abs(sum(losses)),
            "max_consecutive_losses": self._calculate_max_consecutive_losses(returns),
            "return_on_capital": net_profit / initial_capital if initial_capital > 0 else 0.0,
            "avg_holding_ms": statistics.mean(t.exit_time - t.entry_time for t in trades),
        }

    def _calculate_max_consecutive_losses(self, returns: List[float]) -> int:
        """Calculate maximum number of consecutive losing trades"""
        max_consecutive = 0
        current_consecutive = 0

        for return_val in returns:
            if return_val <= 0:
                current_consecutive += 1
                max_consecutive = max(max_consecutive, current_consecutive)
            else:
                current_consecutive = 0

        return max_consecutive

    def _empty_statistics(self) -> Dict[str, Any]:
        """Statistics for a run without closed trades"""
        return {
            "avg_profit_percent": 0.0,
            "best_trade_percent": 0.0,
            "worst_trade_percent": 0.0,
            "avg_win": 0.0,
            "avg_loss": 0.0,
            "gross_profit": 0.0,
            "gross_loss": 0.0,
            "max_consecutive_losses": 0,
            "return_on_capital": 0.0,
            "avg_holding_ms": 0.0,
        }
