# services/portfolio_service.py
# -------------------------------
# Portfolio Service - API Layer
# Validates dashboard requests, proxies the quantum optimizer in live mode
# and synthesizes demo analytics in mock mode
# -------------------------------

import logging
import os
import sys
import time
import uuid
from typing import Any, Dict, List, Optional

from fastapi import Body, Depends, FastAPI, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

# Add parent directory to path for imports
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from shared import schema_mapper, synthetic
from shared.config import Settings, load_settings
from shared.errors import ServiceError
from shared.gateway import QuantumGateway
from shared.models import (
    AllocationQuery,
    ErrorEnvelope,
    EvolutionQuery,
    FrontierQuery,
    NormalizedOptimizeResult,
    OptimizeRequest,
    RebalanceRequest,
    RebalanceResult,
    RiskReturnQuery,
    StressResult,
)
from shared.validation import (
    INVALID_REQUEST,
    format_errors,
    validate_optimize_request,
    validate_rebalance_request,
    validate_stress_request,
)

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

RISK_RETURN_MIN_ASSETS = 3
RISK_RETURN_MAX_ASSETS = 12


class PortfolioService:
    """Chooses between the live optimizer and the synthetic engine."""

    def __init__(self, settings: Settings, gateway: QuantumGateway):
        self.settings = settings
        self.gateway = gateway

    async def optimize(self, request: OptimizeRequest) -> NormalizedOptimizeResult:
        body = schema_mapper.to_upstream_optimize_body(request)
        if self.settings.mock_mode:
            raw = synthetic.mock_upstream_optimize(request, body["dataset_option"])
        else:
            raw = await self.gateway.optimize(body)
        return schema_mapper.normalize_optimize(raw)

    async def rebalance(self, request: RebalanceRequest) -> RebalanceResult:
        body = schema_mapper.to_upstream_rebalance_body(request)
        if self.settings.mock_mode:
            raw = synthetic.mock_upstream_rebalance(
                body["dataset_option"], body["budget"], body["total_investment"]
            )
        else:
            raw = await self.gateway.rebalance(body)
        return schema_mapper.normalize_rebalance(raw, request)

    async def quantum_health(self) -> JSONResponse:
        if self.settings.mock_mode:
            return JSONResponse({"quantumHealthy": True, "mode": "mock", "time": schema_mapper.run_id()})
        if not self.settings.quantum_base_url:
            return JSONResponse(
                status_code=503,
                content={"quantumHealthy": False, "reason": "QUANTUM_BASE_URL not set"},
            )
        try:
            code = await self.gateway.check_health()
        except ServiceError as exc:
            logger.warning(f"Quantum health check failed: {exc}")
            return JSONResponse(
                status_code=503,
                content={"quantumHealthy": False, "mode": "live", "reason": "timeout/unreachable"},
            )
        if 200 <= code < 300:
            return JSONResponse({"quantumHealthy": True, "mode": "live", "code": code})
        return JSONResponse(status_code=503, content={"quantumHealthy": False, "mode": "live", "code": code})


settings = load_settings()
quantum_gateway = QuantumGateway(settings)


def get_settings() -> Settings:
    """Return the process-wide settings."""
    return settings


def get_gateway() -> QuantumGateway:
    """Return the shared upstream gateway."""
    return quantum_gateway


def get_portfolio_service(
    settings: Settings = Depends(get_settings),
    gateway: QuantumGateway = Depends(get_gateway),
) -> PortfolioService:
    return PortfolioService(settings, gateway)


# Initialize FastAPI app
app = FastAPI(
    title="Portfolio Service",
    description="Quantum portfolio optimizer gateway with synthetic demo analytics",
    version="1.0.0",
)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    request_id = str(uuid.uuid4())
    started = time.perf_counter()
    logger.info(f"[{request_id}] -> {request.method} {request.url.path}")
    response = await call_next(request)
    elapsed_ms = (time.perf_counter() - started) * 1000
    response.headers["X-Request-Id"] = request_id
    logger.info(f"[{request_id}] <- {response.status_code} ({elapsed_ms:.0f}ms)")
    return response


def error_response(status_code: int, envelope: ErrorEnvelope) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=envelope.model_dump(exclude_none=True))


@app.exception_handler(ServiceError)
async def service_error_handler(request: Request, exc: ServiceError) -> JSONResponse:
    if exc.kind in ("validation", "bad_request"):
        logger.warning(f"{request.url.path} rejected ({exc.kind}): {exc.details or exc.message}")
    else:
        logger.error(f"{request.url.path} failed ({exc.kind}): {exc.message}")
    return error_response(exc.http_status, exc.to_envelope())


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    details = format_errors(exc.errors())
    logger.warning(f"{request.url.path} rejected (validation): {details}")
    return error_response(400, ErrorEnvelope(error=INVALID_REQUEST, details=details))


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(f"Unhandled exception while serving {request.url.path}", exc_info=exc)
    return error_response(500, ErrorEnvelope(error="Internal error", details="Something went wrong"))


@app.get("/health")
async def health_check(settings: Settings = Depends(get_settings)):
    return {"status": "healthy", "service": "portfolio_service", "mode": settings.mode}


@app.get("/health/quantum")
async def quantum_health(service: PortfolioService = Depends(get_portfolio_service)):
    """Report whether the optimizer answers its health endpoint."""
    return await service.quantum_health()


@app.post("/optimize", response_model=NormalizedOptimizeResult)
async def optimize(
    payload: Any = Body(None),
    service: PortfolioService = Depends(get_portfolio_service),
):
    """Select and weight assets via the quantum optimizer."""
    request = validate_optimize_request(payload)
    return await service.optimize(request)


@app.post("/rebalance", response_model=RebalanceResult)
async def rebalance(
    payload: Any = Body(None),
    service: PortfolioService = Depends(get_portfolio_service),
):
    """Compare current and rebalanced holdings and project both forward."""
    request = validate_rebalance_request(payload)
    return await service.rebalance(request)


@app.get("/compare/accuracy")
async def compare_accuracy(risk: str = Query("medium", description="low, medium or high")):
    return synthetic.get_accuracy(schema_mapper.map_risk(risk))


@app.post("/compare/risk-return")
async def compare_risk_return(query: Optional[RiskReturnQuery] = Body(None)):
    query = query or RiskReturnQuery()
    count = max(RISK_RETURN_MIN_ASSETS, min(RISK_RETURN_MAX_ASSETS, int(query.maxAssets or 5)))
    return synthetic.get_risk_return(
        dataset=query.dataset,
        count=count,
        asset_names=query.assetNames,
        weights=query.weights,
    )


@app.api_route("/sharpe", methods=["GET", "POST"])
async def sharpe() -> List[Dict]:
    return synthetic.sharpe_comparison()


@app.post("/frontier")
async def frontier(query: Optional[FrontierQuery] = Body(None)):
    query = query or FrontierQuery()
    return synthetic.efficient_frontier(query.riskLevel)


@app.post("/qaoa/bits")
async def qaoa_bits():
    return synthetic.qaoa_bitstrings()


@app.post("/allocation")
async def allocation(query: Optional[AllocationQuery] = Body(None)):
    query = query or AllocationQuery()
    return synthetic.allocation(query.dataset)


@app.post("/evolution")
async def evolution(query: Optional[EvolutionQuery] = Body(None)):
    query = query or EvolutionQuery()
    return synthetic.equity_evolution(query.initialEquity, query.timeHorizon)


@app.post("/stress", response_model=StressResult)
async def stress(payload: Any = Body(None)):
    """Per-asset post-shock equity and the ruin line."""
    request = validate_stress_request({} if payload is None else payload)
    return synthetic.stress_test(request)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host=settings.host, port=settings.port)
