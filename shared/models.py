# shared/models.py
# -------------------------------
# Shared Data Models for the Portfolio Service
# -------------------------------

from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import AliasChoices, BaseModel, BeforeValidator, ConfigDict, Field, model_validator

Dataset = Literal["NIFTY50", "NASDAQ100", "CRYPTO50"]
RiskLevel = Literal["low", "medium", "high"]


def _reject_non_numeric(value: Any) -> Any:
    """JSON numbers only: text and booleans are not coerced."""
    if isinstance(value, (str, bool)):
        raise ValueError("Input should be a number")
    return value


Number = Annotated[float, BeforeValidator(_reject_non_numeric), Field(allow_inf_nan=False)]
Count = Annotated[int, BeforeValidator(_reject_non_numeric)]
PositiveNumber = Annotated[Number, Field(gt=0)]
PositiveCount = Annotated[Count, Field(gt=0)]
Fraction = Annotated[Number, Field(ge=0, le=1)]
Percent = Annotated[Number, Field(ge=0, le=100)]


class ValueRecord(BaseModel):
    """Immutable request-scoped record."""

    model_config = ConfigDict(frozen=True)


# ---------- Dashboard -> service ----------

class WeightConstraints(ValueRecord):
    minWeight: Optional[Fraction] = None
    maxWeight: Optional[Fraction] = None


class OptimizeRequest(ValueRecord):
    """Dataset-mode optimization request. `budget` is currency, `maxAssets` a count."""

    mode: Literal["dataset"]
    dataset: Dataset
    timeHorizon: Optional[PositiveCount] = None
    riskLevel: RiskLevel = "medium"
    budget: PositiveNumber
    maxAssets: PositiveCount
    objective: Optional[Literal["sharpe", "variance"]] = None
    qaoaParams: Optional[Dict[str, Any]] = None
    constraints: Optional[WeightConstraints] = None
    include: Optional[List[str]] = None
    exclude: Optional[List[str]] = None


class RebalanceRequest(ValueRecord):
    """Rebalance request. Here `budget` is the number of assets."""

    dataset: str = Field(min_length=1)
    budget: PositiveCount
    risk: RiskLevel
    totalInvestment: PositiveNumber
    timeHorizon: Annotated[Count, Field(ge=5, le=365)] = 30


def _asset_name(value: Any) -> Any:
    """Missing, null or empty names become the generic "Asset"."""
    return value or "Asset"


class StressAllocation(ValueRecord):
    name: Annotated[str, BeforeValidator(_asset_name)] = "Asset"
    value: Percent = 0


class StressShocks(ValueRecord):
    ratesBps: Number = 0
    oilPct: Number = 0
    techPct: Number = 0
    fxPct: Number = 0


class StressRequest(ValueRecord):
    alloc: List[StressAllocation] = []
    initialEquity: Annotated[Number, Field(ge=0)] = 100000
    threshold: Percent = 60
    stress: StressShocks = Field(default_factory=StressShocks)


class RiskReturnQuery(ValueRecord):
    dataset: str = "nifty50"
    maxAssets: Optional[Number] = 5
    assetNames: List[str] = []
    weights: List[Number] = []


class FrontierQuery(ValueRecord):
    riskLevel: Optional[str] = "medium"


class AllocationQuery(ValueRecord):
    # null selects the generic demo names
    dataset: Optional[str] = "nifty50"


class EvolutionQuery(ValueRecord):
    initialEquity: Annotated[Number, Field(ge=0)] = 100000
    timeHorizon: Annotated[Count, Field(ge=0, le=3650)] = 12


# ---------- Upstream optimizer wire schema ----------

class UpstreamPosition(BaseModel):
    model_config = ConfigDict(allow_inf_nan=False)

    asset: str
    expected_return: Optional[float] = None
    weight: float
    investment: Optional[float] = None
    percentage: Optional[float] = None


class UpstreamOptimizeResponse(BaseModel):
    """Payload returned by the optimizer's /optimize endpoint."""

    model_config = ConfigDict(allow_inf_nan=False)

    dataset: str
    budget: float
    risk_factor: str
    total_investment: float
    objective_value: Optional[float] = None
    gamma: Optional[float] = None
    portfolio: List[UpstreamPosition]


class UpstreamRecommendation(BaseModel):
    model_config = ConfigDict(allow_inf_nan=False)

    action: str = "HOLD"
    asset: str = ""
    current_pct: float = Field(0.0, validation_alias=AliasChoices("current_pct", "current"))
    future_pct: float = Field(0.0, validation_alias=AliasChoices("future_pct", "future"))
    change_pct: float = Field(0.0, validation_alias=AliasChoices("change_pct", "change"))


# ---------- Service -> dashboard ----------

class AllocationSlice(ValueRecord):
    name: str
    value: int


class OptimizeDiagnostics(ValueRecord):
    backend: Optional[str] = None
    dataset: Optional[str] = None
    objectiveValue: Optional[float] = None
    gamma: Optional[float] = None


class NormalizedOptimizeResult(ValueRecord):
    runId: str
    method: Literal["quantum"] = "quantum"
    selected: List[str] = Field(min_length=1)
    weights: List[float] = Field(min_length=1)
    allocation: List[AllocationSlice]
    expectedReturn: Optional[float] = None
    risk: Optional[float] = None
    sharpe: Optional[float] = None
    diagnostics: OptimizeDiagnostics = Field(default_factory=OptimizeDiagnostics)

    @model_validator(mode="after")
    def check_parallel_lists(self) -> "NormalizedOptimizeResult":
        if not (len(self.selected) == len(self.weights) == len(self.allocation)):
            raise ValueError("selected, weights and allocation must have the same length")
        return self


class PortfolioLine(ValueRecord):
    asset: str
    weight: float
    expected_return: float


class RebalanceAction(ValueRecord):
    action: str
    asset: str
    current_pct: float
    future_pct: float
    change_pct: float


class RebalancePoint(ValueRecord):
    time: str
    Current: float
    Future: float


class RebalanceSummary(ValueRecord):
    muCurrent: float
    muFuture: float


class RebalanceResult(ValueRecord):
    runId: str
    dataset: str
    current: List[PortfolioLine] = []
    future: List[PortfolioLine] = []
    actions: List[RebalanceAction] = []
    evolution: List[RebalancePoint] = []
    summary: RebalanceSummary


class StressBar(ValueRecord):
    name: str
    value: int = Field(ge=0)


class StressResult(ValueRecord):
    bars: List[StressBar]
    ruinLine: int


class ErrorEnvelope(BaseModel):
    """Client-facing error body."""

    error: str
    details: Optional[Union[str, List[str]]] = None
