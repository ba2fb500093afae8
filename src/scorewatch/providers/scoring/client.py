"""HTTP client for the platform scoring service.

Calls the internal endpoint that runs the same score calculation the web
platform shows to premium users:
- Overall score: GET {base_url}/companies/{ticker}/score
"""

from __future__ import annotations

import httpx
import orjson
from pydantic import ValidationError

from scorewatch.config import get_settings
from scorewatch.core.exceptions import ScoreProviderError
from scorewatch.core.logging import get_logger
from scorewatch.monitoring.models import ScoreResult

logger = get_logger(__name__)


class ScoringServiceClient:
    """Client for the scoring service.

    Usage:
        client = ScoringServiceClient()
        result = await client.compute_overall_score("PETR4")
        await client.close()
    """

    def __init__(
        self,
        base_url: str | None = None,
        api_key: str | None = None,
        timeout: float | None = None,
    ) -> None:
        settings = get_settings()
        self._base_url = (base_url or settings.scoring_api_url).rstrip("/")
        if api_key is None and settings.scoring_api_key:
            api_key = settings.scoring_api_key.get_secret_value()
        self._api_key = api_key
        self._timeout = timeout or settings.scoring_timeout_seconds
        self._http_client: httpx.AsyncClient | None = None

    def _get_http_client(self) -> httpx.AsyncClient:
        if self._http_client is None:
            headers = {
                "User-Agent": "Scorewatch/1.0",
                "Accept": "application/json",
            }
            if self._api_key:
                headers["Authorization"] = f"Bearer {self._api_key}"
            self._http_client = httpx.AsyncClient(timeout=self._timeout, headers=headers)
        return self._http_client

    async def compute_overall_score(
        self,
        ticker: str,
        *,
        include_strategies: bool = True,
        include_statements: bool = True,
    ) -> ScoreResult | None:
        """Fetch the overall score for a ticker.

        Returns:
            ScoreResult, or None if the service has no score for the ticker

        Raises:
            ScoreProviderError: On transport errors, non-404 HTTP errors or a
                payload that does not match ScoreResult
        """
        client = self._get_http_client()
        url = f"{self._base_url}/companies/{ticker.upper()}/score"
        params = {
            # Monitoring always scores as a premium, logged-in user
            "isPremium": "true",
            "includeStrategies": str(include_strategies).lower(),
            "includeStatements": str(include_statements).lower(),
        }

        try:
            resp = await client.get(url, params=params)
        except httpx.HTTPError as e:
            raise ScoreProviderError(f"Scoring service request failed for {ticker}: {e}") from e

        if resp.status_code == 404:
            logger.debug("No score available", ticker=ticker)
            return None

        try:
            resp.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise ScoreProviderError(
                f"Scoring service returned {resp.status_code} for {ticker}"
            ) from e

        data = orjson.loads(resp.content) if resp.content else None
        if not data or not data.get("overallScore"):
            logger.debug("Score payload empty", ticker=ticker)
            return None

        try:
            return ScoreResult.model_validate(data)
        except ValidationError as e:
            raise ScoreProviderError(f"Unexpected score payload for {ticker}: {e}") from e

    async def close(self) -> None:
        """Clean up resources."""
        if self._http_client:
            await self._http_client.aclose()
            self._http_client = None
        logger.debug("ScoringServiceClient closed")
