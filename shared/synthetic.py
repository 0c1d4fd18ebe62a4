"""Synthetic analytics for demo endpoints and mock mode.

The generators aim for charts that look plausible and stay stable between
refreshes, not for statistical rigor. Anything that must be reproducible
draws from a `SeededStream`; the rest uses an `UnseededStream`.
"""

import logging
import math
from typing import Dict, List, Optional, Sequence, Union

import numpy as np

from shared.models import OptimizeRequest, StressBar, StressRequest, StressResult, StressShocks

logger = logging.getLogger(__name__)

UINT32_MASK = 0xFFFFFFFF

ASSET_NAMES: Dict[str, List[str]] = {
    "nifty50": ["Reliance", "HDFC Bank", "Infosys", "TCS", "ICICI Bank", "HUL", "Bharti Airtel"],
    "nasdaq": ["Apple", "Microsoft", "Amazon", "Google", "Tesla", "Nvidia", "Meta"],
    "crypto": ["Bitcoin", "Ethereum", "Solana", "Cardano", "Polkadot", "BNB", "XRP"],
}
GENERIC_NAMES = ["Alpha", "Beta", "Gamma", "Delta", "Epsilon", "Zeta"]

NAME_BANK = [
    "Reliance", "HDFC Bank", "Infosys", "TCS", "ICICI Bank", "HUL",
    "Bharti Airtel", "Bajaj Auto", "Sun Pharmaceutical", "M&M", "HCL Tech",
    "Tata Motors", "Larsen & Toubro", "Axis Bank", "ITC",
]

ACCURACY_BASE = {"low": 72, "medium": 76, "high": 80}
FRONTIER_BASE = {"low": 5, "medium": 10, "high": 20}
FRONTIER_POINTS = 8

SHARPE_BARS = [
    {"name": "Classical", "value": 1.1},
    {"name": "Quantum", "value": 1.35},
    {"name": "Hybrid", "value": 1.42},
]

QAOA_BITSTRINGS = [
    {"bits": "00111", "p": 0.21, "expRet": 0.093, "risk": 0.113, "constraints": "OK"},
    {"bits": "11100", "p": 0.20, "expRet": 0.088, "risk": 0.092, "constraints": "OK"},
    {"bits": "10101", "p": 0.19, "expRet": 0.097, "risk": 0.117, "constraints": "ESG excluded"},
    {"bits": "11010", "p": 0.18, "expRet": 0.092, "risk": 0.095, "constraints": "ESG excluded"},
    {"bits": "10011", "p": 0.13, "expRet": 0.090, "risk": 0.096, "constraints": "OK"},
]

# First match wins, so energy and tech are checked before finance/auto/health.
SECTOR_KEYWORDS = (
    ("energy", ("oil", "coal", "petro", "energy")),
    ("tech", ("tech", "it", "software", "airtel")),
    ("finance", ("bank", "finance")),
    ("auto", ("auto",)),
    ("health", ("pharma", "lab", "health")),
)
BASE_STRESS = {
    "energy": 0.10,
    "tech": 0.12,
    "finance": 0.08,
    "auto": 0.07,
    "health": 0.05,
    "other": 0.06,
}
STRESS_FLOOR = 0.02
STRESS_CEILING = 0.35

TRADING_DAYS_PER_MONTH = 22
MOCK_MU_CURRENT = 8.5
MOCK_MU_FUTURE = 11.0


def half_up(value: float) -> int:
    """Round to the nearest integer with halves going up (12.5 -> 13)."""
    return int(math.floor(value + 0.5))


class SeededStream:
    """32-bit xorshift stream of floats in [0, 1) with 1e-4 resolution.

    Identical seeds give identical sequences, which keeps the per-asset
    jitter stable across requests.
    """

    def __init__(self, seed: int):
        self._state = int(seed) & UINT32_MASK

    def random(self) -> float:
        state = self._state
        state ^= (state << 13) & UINT32_MASK
        state ^= state >> 17
        state ^= (state << 5) & UINT32_MASK
        self._state = state
        return (state % 10000) / 10000

    def uniform(self, low: float, high: float, size: Optional[int] = None) -> Union[float, np.ndarray]:
        if size is None:
            return low + (high - low) * self.random()
        return np.array([low + (high - low) * self.random() for _ in range(size)])


class UnseededStream:
    """Non-deterministic stream backed by numpy's Generator."""

    def __init__(self, seed: Optional[int] = None):
        self._rng = np.random.default_rng(seed)

    def random(self) -> float:
        return float(self._rng.random())

    def uniform(self, low: float, high: float, size: Optional[int] = None) -> Union[float, np.ndarray]:
        if size is None:
            return float(self._rng.uniform(low, high))
        return self._rng.uniform(low, high, size=size)

    def choice(self, items: Sequence[str], k: int) -> List[str]:
        k = max(0, min(k, len(items)))
        picks = self._rng.choice(len(items), size=k, replace=False)
        return [items[int(i)] for i in picks]


Stream = Union[SeededStream, UnseededStream]


def name_seed(text: Optional[str]) -> int:
    """Sum of code points; cheap and stable across processes."""
    return sum(ord(ch) for ch in str(text or ""))


def asset_universe(dataset: Optional[str]) -> List[str]:
    """Fixed demo names for a dataset key (`nifty50`, `nasdaq`, `crypto`)."""
    return list(ASSET_NAMES.get(str(dataset or "").lower(), GENERIC_NAMES))


def pick_names(count: int, stream: Optional[UnseededStream] = None) -> List[str]:
    stream = stream or UnseededStream()
    return stream.choice(NAME_BANK, count)


# ---------- Compare tab ----------

def get_accuracy(risk: str = "medium") -> Dict:
    base = ACCURACY_BASE.get(risk, ACCURACY_BASE["medium"])
    return {
        "metric": "accuracy",
        "quantum": min(97, base + 12),
        "classical": max(55, base - 8),
    }


def get_risk_return(
    dataset: str = "nifty50",
    count: int = 5,
    asset_names: Optional[Sequence[str]] = None,
    weights: Optional[Sequence[float]] = None,
    stream: Optional[UnseededStream] = None,
) -> Dict:
    """Per-asset classical vs quantum risk/return points.

    Weights are percentages; more weight means lower risk and higher return.
    Jitter comes from a stream seeded by dataset, count, name and position,
    so the same inputs always produce the same points.
    """
    names = list(asset_names) if asset_names else pick_names(count, stream)
    if weights and len(weights) == len(names):
        percents = [max(0.0, float(w)) for w in weights]
    else:
        percents = [100 / (len(names) or 1)] * len(names)

    base_seed = name_seed(dataset) + count * 97
    points = []
    for idx, (name, pct) in enumerate(zip(names, percents)):
        w = pct / 100
        rnd = SeededStream(base_seed + name_seed(name) + idx * 17)

        risk_from_weight = 20 - 12 * w
        return_from_weight = 6 + 10 * w
        jitter_risk = (rnd.random() - 0.5) * 1.2
        jitter_ret = (rnd.random() - 0.5) * 1.2

        classical_risk = round(risk_from_weight + jitter_risk, 1)
        classical_ret = round(return_from_weight + jitter_ret, 1)

        bonus_ret = round(0.8 + rnd.random() * 1.0, 1)
        risk_edge = round(0.3 + rnd.random() * 0.5, 1)

        points.append({
            "name": name,
            "classical": {"risk": classical_risk, "ret": classical_ret},
            "quantum": {
                "risk": max(3, round(classical_risk - risk_edge, 1)),
                "ret": round(classical_ret + bonus_ret, 1),
            },
        })
    return {"dataset": dataset, "points": points}


# ---------- Analytics tab ----------

def sharpe_comparison() -> List[Dict]:
    return [dict(bar) for bar in SHARPE_BARS]


def efficient_frontier(risk_level: Optional[str] = "medium") -> List[Dict]:
    """Eight points on a straight frontier; anything but low or medium uses the high base."""
    base = FRONTIER_BASE.get(risk_level, FRONTIER_BASE["high"])
    return [
        {"risk": base + i * 2, "return": base / 2 + i * 1.5}
        for i in range(FRONTIER_POINTS)
    ]


def qaoa_bitstrings() -> List[Dict]:
    return [dict(row) for row in QAOA_BITSTRINGS]


def allocation(dataset: Optional[str] = "nifty50", stream: Optional[Stream] = None) -> List[Dict]:
    """Random five-asset split of 100% for the dataset's first names."""
    stream = stream or UnseededStream()
    names = asset_universe(dataset)[:5]
    raw = stream.uniform(5, 40, size=len(names))
    shares = raw / raw.sum() * 100
    return [{"name": name, "value": half_up(share)} for name, share in zip(names, shares)]


def equity_evolution(
    initial_equity: float = 100000,
    time_horizon: int = 12,
    stream: Optional[Stream] = None,
) -> List[Dict]:
    stream = stream or UnseededStream()
    steps = max(0, int(time_horizon))
    quantum = float(initial_equity) * np.cumprod(1 + stream.uniform(-0.01, 0.03, size=steps))
    classical = float(initial_equity) * 0.95 * np.cumprod(1 + stream.uniform(-0.01, 0.02, size=steps))
    return [
        {"time": f"Day {i + 1}", "Quantum": half_up(q), "Classical": half_up(c)}
        for i, (q, c) in enumerate(zip(quantum, classical))
    ]


def rebalance_evolution(
    days: Optional[int],
    start: Optional[float],
    mu_current: float,
    mu_future: float,
    stream: Optional[Stream] = None,
) -> List[Dict]:
    """Daily equity paths for the current and the rebalanced portfolio.

    `mu_*` are monthly expected returns in percent, spread over 22 trading days.
    """
    stream = stream or UnseededStream()
    n = max(5, int(days or 30))
    s = max(1000.0, float(start or 100000))
    cur_day = mu_current / 100 / TRADING_DAYS_PER_MONTH
    fut_day = mu_future / 100 / TRADING_DAYS_PER_MONTH
    current = s * np.cumprod(1 + cur_day + stream.uniform(-0.001, 0.001, size=n))
    future = s * np.cumprod(1 + fut_day + stream.uniform(-0.001, 0.001, size=n))
    return [
        {"time": f"Day {i + 1}", "Current": half_up(c), "Future": half_up(f)}
        for i, (c, f) in enumerate(zip(current, future))
    ]


# ---------- Stress test ----------

def classify_sector(name: Optional[str]) -> str:
    lowered = (name or "").lower()
    for sector, keywords in SECTOR_KEYWORDS:
        if any(keyword in lowered for keyword in keywords):
            return sector
    return "other"


def stress_factor(sector: str, shocks: StressShocks) -> float:
    rates_hit = max(0.0, shocks.ratesBps) / 10000
    oil_shock = shocks.oilPct / 100
    tech_shock = shocks.techPct / 100
    fx_shock = abs(shocks.fxPct) / 100 * 0.3

    factor = BASE_STRESS.get(sector, BASE_STRESS["other"])
    if sector == "finance":
        factor += rates_hit * 0.8 + fx_shock * 0.2
    elif sector == "tech":
        factor += rates_hit * 0.3 + max(0.0, -tech_shock) * 0.6 + fx_shock * 0.1
    elif sector == "energy":
        factor += max(0.0, oil_shock) * 0.7 + fx_shock * 0.1
    elif sector == "auto":
        factor += rates_hit * 0.2 + fx_shock * 0.2
    elif sector == "health":
        factor += rates_hit * 0.1
    return min(STRESS_CEILING, max(STRESS_FLOOR, factor))


def stress_test(request: StressRequest) -> StressResult:
    bars = []
    for holding in request.alloc:
        name = holding.name or "Asset"
        factor = stress_factor(classify_sector(name), request.stress)
        equity_after = request.initialEquity * holding.value / 100 * (1 - factor)
        bars.append(StressBar(name=name, value=max(0, half_up(equity_after))))
    ruin_line = half_up(request.threshold / 100 * request.initialEquity)
    return StressResult(bars=bars, ruinLine=ruin_line)


# ---------- Mock upstream payloads ----------

def mock_upstream_optimize(
    request: OptimizeRequest,
    dataset_option: str,
    stream: Optional[Stream] = None,
) -> Dict:
    """Fabricate a payload in the optimizer's /optimize wire shape."""
    stream = stream or UnseededStream()
    names = asset_universe(dataset_option)[: request.maxAssets]
    raw = stream.uniform(5, 40, size=len(names))
    weights = raw / raw.sum()
    returns = stream.uniform(6, 18, size=len(names))
    portfolio = [
        {
            "asset": name,
            "expected_return": round(float(ret), 2),
            "weight": round(float(w), 4),
            "investment": round(float(w) * request.budget, 2),
            "percentage": round(float(w) * 100, 2),
        }
        for name, w, ret in zip(names, weights, returns)
    ]
    logger.info(f"Mock optimize payload for {dataset_option} with {len(portfolio)} assets")
    return {
        "dataset": dataset_option,
        "budget": request.maxAssets,
        "risk_factor": request.riskLevel,
        "total_investment": request.budget,
        "objective_value": round(float(np.dot(weights, returns)), 4),
        "portfolio": portfolio,
    }


def mock_upstream_rebalance(
    dataset_option: str,
    asset_count: int,
    total_investment: float,
    stream: Optional[Stream] = None,
) -> Dict:
    """Fabricate a /rebalance payload whose weighted returns sit near 8.5% and 11%.

    Current holdings come in the percentage shape and future holdings in the
    weight shape, the two forms the optimizer is known to emit.
    """
    stream = stream or UnseededStream()
    names = asset_universe(dataset_option)[: max(1, asset_count)]
    current_w = stream.uniform(5, 40, size=len(names))
    current_w = current_w / current_w.sum()
    future_w = stream.uniform(5, 40, size=len(names))
    future_w = future_w / future_w.sum()
    current_ret = MOCK_MU_CURRENT + stream.uniform(-1.5, 1.5, size=len(names))
    future_ret = MOCK_MU_FUTURE + stream.uniform(-1.5, 1.5, size=len(names))

    recommendations = []
    for name, cw, fw in zip(names, current_w, future_w):
        change = round(float(fw - cw) * 100, 2)
        if change > 0.5:
            action = "BUY"
        elif change < -0.5:
            action = "SELL"
        else:
            action = "HOLD"
        recommendations.append({
            "action": action,
            "asset": name,
            "current_pct": round(float(cw) * 100, 2),
            "future_pct": round(float(fw) * 100, 2),
            "change_pct": change,
        })

    return {
        "dataset": dataset_option,
        "total_investment": total_investment,
        "current_portfolio": [
            {"asset": name, "percentage": round(float(w) * 100, 2), "exp_ret": round(float(r), 2)}
            for name, w, r in zip(names, current_w, current_ret)
        ],
        "future_portfolio": [
            {"asset": name, "weight": round(float(w), 4), "expected_return": round(float(r), 2)}
            for name, w, r in zip(names, future_w, future_ret)
        ],
        "recommendations": recommendations,
    }
