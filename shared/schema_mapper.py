"""Translation between the dashboard's request shapes and the optimizer's wire schema.

Outbound, the dashboard's currency `budget` becomes the optimizer's
`total_investment` and the asset count becomes the optimizer's `budget`.
Inbound, optimizer payloads are normalized into the records in
`shared.models`.
"""

import logging
import math
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional, Sequence, Union

from pydantic import ValidationError

from shared import synthetic
from shared.errors import ServiceError
from shared.models import (
    AllocationSlice,
    NormalizedOptimizeResult,
    OptimizeDiagnostics,
    OptimizeRequest,
    PortfolioLine,
    RebalanceAction,
    RebalanceRequest,
    RebalanceResult,
    RebalanceSummary,
    UpstreamOptimizeResponse,
    UpstreamRecommendation,
)

logger = logging.getLogger(__name__)

DEFAULT_DATASET = "NIFTY50"
DEFAULT_RISK = "medium"

# Checked in order against the upper-cased input.
DATASET_KEYWORDS = (
    ("NIFTY", "NIFTY50"),
    ("NASDAQ", "NASDAQ"),
    ("CRYPTO", "Crypto"),
)


def run_id(now: Optional[datetime] = None) -> str:
    """ISO-8601 UTC timestamp with millisecond precision."""
    now = now or datetime.now(timezone.utc)
    return now.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def map_dataset(raw: Any) -> str:
    """Map any dashboard dataset label to the optimizer's dataset token.

    Matching is case-insensitive and substring based ("Nifty 50 Index" is
    NIFTY50). Unrecognized or missing input falls back to NIFTY50.
    """
    label = str(raw or "").upper()
    for keyword, token in DATASET_KEYWORDS:
        if keyword in label:
            return token
    return DEFAULT_DATASET


def map_risk(raw: Any) -> str:
    """Only `low` and `high` survive; everything else is `medium`."""
    risk = str(raw or "").strip().lower()
    if risk in ("low", "high"):
        return risk
    return DEFAULT_RISK


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value)


# ---------- Optimize ----------

def to_upstream_optimize_body(request: OptimizeRequest) -> Dict[str, Any]:
    return {
        "dataset_option": map_dataset(request.dataset),
        "budget": int(request.maxAssets),
        "risk_factor": map_risk(request.riskLevel),
        "total_investment": float(request.budget),
    }


def normalize_optimize(raw: Any, now: Optional[datetime] = None) -> NormalizedOptimizeResult:
    try:
        parsed = UpstreamOptimizeResponse.model_validate(raw)
    except ValidationError as exc:
        logger.error(f"Malformed optimize payload from upstream: {exc}")
        raise ServiceError("upstream_unavailable", "Quantum API returned a malformed optimize payload") from exc
    if not parsed.portfolio:
        raise ServiceError("upstream_unavailable", "Quantum API returned an empty portfolio")

    selected = [position.asset for position in parsed.portfolio]
    weights = [float(position.weight or 0) for position in parsed.portfolio]
    allocation = [
        AllocationSlice(
            name=position.asset,
            value=synthetic.half_up(
                position.percentage if position.percentage is not None else (position.weight or 0) * 100
            ),
        )
        for position in parsed.portfolio
    ]
    returns = [p.expected_return for p in parsed.portfolio if p.expected_return is not None]
    expected_return = sum(returns) / len(returns) if returns else None

    return NormalizedOptimizeResult(
        runId=run_id(now),
        selected=selected,
        weights=weights,
        allocation=allocation,
        expectedReturn=expected_return,
        risk=None,
        sharpe=None,
        diagnostics=OptimizeDiagnostics(
            backend="fastapi",
            dataset=parsed.dataset,
            objectiveValue=parsed.objective_value,
            gamma=parsed.gamma,
        ),
    )


# ---------- Rebalance ----------

def to_upstream_rebalance_body(request: RebalanceRequest) -> Dict[str, Any]:
    # future_dataset_option is left out so the optimizer uses "<dataset>_Future".
    return {
        "dataset_option": map_dataset(request.dataset),
        "budget": int(request.budget),
        "risk_factor": map_risk(request.risk),
        "total_investment": float(request.totalInvestment),
    }


def _expected_return(raw: Mapping[str, Any]) -> float:
    for key in ("expected_return", "exp_ret"):
        if _is_number(raw.get(key)):
            return float(raw[key])
    return 0.0


@dataclass(frozen=True)
class WeightedHolding:
    """Holding reported with a 0..1 `weight`."""

    asset: str
    weight: float
    expected_return: float

    def to_line(self) -> PortfolioLine:
        return PortfolioLine(asset=self.asset, weight=self.weight, expected_return=self.expected_return)


@dataclass(frozen=True)
class PercentHolding:
    """Holding reported with a 0..100 `percentage`."""

    asset: str
    percentage: float
    expected_return: float

    def to_line(self) -> PortfolioLine:
        return PortfolioLine(
            asset=self.asset,
            weight=self.percentage / 100,
            expected_return=self.expected_return,
        )


@dataclass(frozen=True)
class UnweightedHolding:
    """Holding with neither weight nor percentage; it carries no weight."""

    asset: str
    expected_return: float

    def to_line(self) -> PortfolioLine:
        return PortfolioLine(asset=self.asset, weight=0.0, expected_return=self.expected_return)


UpstreamHolding = Union[WeightedHolding, PercentHolding, UnweightedHolding]


def parse_holding(raw: Mapping[str, Any]) -> UpstreamHolding:
    asset = str(raw.get("asset", ""))
    expected = _expected_return(raw)
    if _is_number(raw.get("weight")):
        return WeightedHolding(asset=asset, weight=float(raw["weight"]), expected_return=expected)
    if _is_number(raw.get("percentage")):
        return PercentHolding(asset=asset, percentage=float(raw["percentage"]), expected_return=expected)
    return UnweightedHolding(asset=asset, expected_return=expected)


def canonicalize_holding(raw: Mapping[str, Any]) -> PortfolioLine:
    return parse_holding(raw).to_line()


def canonicalize_holdings(raw: Any) -> List[PortfolioLine]:
    if not isinstance(raw, list):
        return []
    return [canonicalize_holding(item) for item in raw if isinstance(item, Mapping)]


def canonicalize_actions(raw: Any) -> List[RebalanceAction]:
    if not isinstance(raw, list):
        return []
    actions = []
    for item in raw:
        if not isinstance(item, Mapping):
            continue
        try:
            rec = UpstreamRecommendation.model_validate(item)
        except ValidationError as exc:
            raise ServiceError("upstream_unavailable", "Quantum API returned a malformed recommendation") from exc
        actions.append(RebalanceAction(**rec.model_dump()))
    return actions


def weighted_mu(lines: Sequence[PortfolioLine]) -> float:
    """Sum of weight * expected return across holdings."""
    return sum(line.weight * line.expected_return for line in lines)


def normalize_rebalance(
    raw: Any,
    request: RebalanceRequest,
    stream: Optional[synthetic.Stream] = None,
    now: Optional[datetime] = None,
) -> RebalanceResult:
    """Build a RebalanceResult; the evolution chart is always synthesized from mu."""
    if not isinstance(raw, Mapping):
        raise ServiceError("upstream_unavailable", "Quantum API returned a malformed rebalance payload")

    current = canonicalize_holdings(raw.get("current_portfolio"))
    future = canonicalize_holdings(raw.get("future_portfolio"))
    actions = canonicalize_actions(raw.get("recommendations"))
    mu_current = weighted_mu(current)
    mu_future = weighted_mu(future)

    evolution = synthetic.rebalance_evolution(
        days=request.timeHorizon,
        start=request.totalInvestment,
        mu_current=mu_current,
        mu_future=mu_future,
        stream=stream,
    )
    return RebalanceResult(
        runId=run_id(now),
        dataset=str(raw.get("dataset") or map_dataset(request.dataset)),
        current=current,
        future=future,
        actions=actions,
        evolution=evolution,
        summary=RebalanceSummary(muCurrent=mu_current, muFuture=mu_future),
    )
