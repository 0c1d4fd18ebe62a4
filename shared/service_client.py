# shared/service_client.py
# -------------------------------
# HTTP client the dashboard uses to talk to the portfolio service
# -------------------------------

import logging
from typing import Any, Dict, List, Optional

import requests

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 10
OPTIMIZE_TIMEOUT = 90


class ServiceClientError(Exception):
    """A portfolio service call failed; `details` carries the envelope's details."""

    def __init__(self, message: str, status_code: Optional[int] = None, details: Any = None):
        super().__init__(message)
        self.status_code = status_code
        self.details = details


class ServiceClient:
    """Client for communicating with the portfolio service"""

    def __init__(self, base_url: str, session: Optional[requests.Session] = None):
        self.base_url = base_url.rstrip("/")
        self.session = session or requests.Session()

    def _request(self, method: str, path: str, payload: Optional[Dict] = None, params: Optional[Dict] = None,
                 timeout: float = DEFAULT_TIMEOUT) -> Any:
        url = f"{self.base_url}{path}"
        try:
            response = self.session.request(method, url, json=payload, params=params, timeout=timeout)
        except requests.RequestException as e:
            logger.error(f"Portfolio service unreachable at {url}: {e}")
            raise ServiceClientError(f"Portfolio service unreachable: {e}") from e

        if response.status_code != 200:
            try:
                body = response.json()
            except ValueError:
                body = {}
            message = body.get("error") if isinstance(body, dict) else None
            details = body.get("details") if isinstance(body, dict) else None
            raise ServiceClientError(
                message or f"HTTP {response.status_code}",
                status_code=response.status_code,
                details=details,
            )
        return response.json()

    def check_service_health(self) -> bool:
        """Check if the service is healthy"""
        try:
            response = self.session.get(f"{self.base_url}/health", timeout=5)
        except requests.RequestException:
            return False
        return response.status_code == 200

    def quantum_health(self) -> Dict:
        """Optimizer health; a 503 still carries a useful body."""
        try:
            response = self.session.get(f"{self.base_url}/health/quantum", timeout=DEFAULT_TIMEOUT)
        except requests.RequestException as e:
            return {"quantumHealthy": False, "reason": str(e)}
        try:
            return response.json()
        except ValueError:
            return {"quantumHealthy": False, "code": response.status_code}

    def optimize(self, payload: Dict) -> Dict:
        return self._request("POST", "/optimize", payload, timeout=OPTIMIZE_TIMEOUT)

    def rebalance(self, payload: Dict) -> Dict:
        return self._request("POST", "/rebalance", payload, timeout=OPTIMIZE_TIMEOUT)

    def accuracy(self, risk: str = "medium") -> Dict:
        return self._request("GET", "/compare/accuracy", params={"risk": risk})

    def risk_return(self, dataset: str, max_assets: int = 5, asset_names: Optional[List[str]] = None,
                    weights: Optional[List[float]] = None) -> Dict:
        payload = {
            "dataset": dataset,
            "maxAssets": max_assets,
            "assetNames": asset_names or [],
            "weights": weights or [],
        }
        return self._request("POST", "/compare/risk-return", payload)

    def sharpe(self) -> List[Dict]:
        return self._request("GET", "/sharpe")

    def frontier(self, risk_level: str = "medium") -> List[Dict]:
        return self._request("POST", "/frontier", {"riskLevel": risk_level})

    def qaoa_bits(self) -> List[Dict]:
        return self._request("POST", "/qaoa/bits", {})

    def allocation(self, dataset: str = "nifty50") -> List[Dict]:
        return self._request("POST", "/allocation", {"dataset": dataset})

    def evolution(self, initial_equity: float = 100000, time_horizon: int = 12) -> List[Dict]:
        return self._request("POST", "/evolution", {"initialEquity": initial_equity, "timeHorizon": time_horizon})

    def stress(self, alloc: List[Dict], initial_equity: float, threshold: float, shocks: Dict) -> Dict:
        payload = {
            "alloc": alloc,
            "initialEquity": initial_equity,
            "threshold": threshold,
            "stress": shocks,
        }
        return self._request("POST", "/stress", payload)
