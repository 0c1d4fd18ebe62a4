"""Derived figures and narrative for the dashboard's insights panel."""

from typing import Dict, List, Optional, Sequence

DIVERSIFIED_HHI = 25
DEFAULT_BEST_SHARPE = {"name": "Hybrid", "value": 1.42}


def _number(value) -> float:
    try:
        return float(value or 0)
    except (TypeError, ValueError):
        return 0.0


def hhi(allocation: Optional[Sequence[Dict]]) -> float:
    """Herfindahl-Hirschman index of percentage slices, scaled to 0..100."""
    if not allocation:
        return 0.0
    return sum((_number(item.get("value")) / 100) ** 2 for item in allocation) * 100


def quantum_edge(evolution: Optional[Sequence[Dict]]) -> float:
    """Percent by which the last Quantum equity beats the last Classical one."""
    if not evolution:
        return 0.0
    last = evolution[-1]
    quantum = _number(last.get("Quantum"))
    classical = _number(last.get("Classical"))
    if not quantum or not classical:
        return 0.0
    return (quantum - classical) / classical * 100


def best_sharpe(bars: Optional[Sequence[Dict]]) -> Dict:
    if not bars:
        return dict(DEFAULT_BEST_SHARPE)
    best = max(bars, key=lambda bar: _number(bar.get("value")))
    return {
        "name": best.get("name") or DEFAULT_BEST_SHARPE["name"],
        "value": best.get("value", DEFAULT_BEST_SHARPE["value"]),
    }


def top_weights(allocation: Optional[Sequence[Dict]], limit: int = 5) -> List[Dict]:
    if not allocation:
        return []
    return sorted(allocation, key=lambda item: _number(item.get("value")), reverse=True)[:limit]


def concentration_label(index: float) -> str:
    return "well diversified" if index < DIVERSIFIED_HHI else "moderately concentrated"


def insights_text(
    evolution: Optional[Sequence[Dict]],
    sharpe_bars: Optional[Sequence[Dict]],
    allocation: Optional[Sequence[Dict]],
    use_hybrid: bool = True,
) -> str:
    """One-paragraph summary of a backtest, in markdown."""
    edge = quantum_edge(evolution)
    best = best_sharpe(sharpe_bars)
    index = hhi(allocation)
    verdict = "outperformed" if edge >= 0 else "underperformed"
    hybrid = "on, subset by QAOA and weights by a classical solver" if use_hybrid else "off"
    return (
        f"Over this backtest, Quantum {verdict} Classical by {abs(edge):.1f}%. "
        f"The best Sharpe among models is **{best['name']}** at {best['value']}. "
        f"Allocation concentration (HHI) is about {index:.1f}, {concentration_label(index)}. "
        f"Hybrid mode is {hybrid}."
    )
