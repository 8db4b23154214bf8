from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping

import requests
import structlog
from returns.result import Failure, Result, Success

from supplier_orders.core.domain.model.errors import DownstreamUnavailable, OrderError

logger = structlog.get_logger(__name__)


def normalize_shop_domain(raw: str) -> str:
    domain = raw.strip()
    for prefix in ("https://", "http://"):
        if domain.startswith(prefix):
            domain = domain[len(prefix) :]
    return domain.rstrip("/")


@dataclass
class ShopifyGraphQLClient:
    """Thin Admin GraphQL transport.

    Anything that keeps us from getting a usable ``data`` object back
    (timeouts, connection errors, non-200, bad JSON, top-level ``errors``)
    is reported as ``DownstreamUnavailable``. Mutation-level ``userErrors``
    live inside ``data`` and are left to the caller.
    """

    shop_domain: str
    access_token: str
    api_version: str = "2024-01"
    timeout: float = 30.0
    session: requests.Session = field(default_factory=requests.Session, repr=False)

    @property
    def endpoint(self) -> str:
        domain = normalize_shop_domain(self.shop_domain)
        return f"https://{domain}/admin/api/{self.api_version}/graphql.json"

    def execute(
        self, query: str, variables: Mapping[str, Any] | None = None
    ) -> Result[dict[str, Any], OrderError]:
        body: dict[str, Any] = {"query": query}
        if variables:
            body["variables"] = dict(variables)

        try:
            resp = self.session.post(
                self.endpoint,
                json=body,
                headers={
                    "Content-Type": "application/json",
                    "X-Shopify-Access-Token": self.access_token,
                },
                timeout=self.timeout,
            )
        except requests.exceptions.Timeout:
            logger.warning("Shopify request timed out", endpoint=self.endpoint)
            return Failure(DownstreamUnavailable(message="shopify request timed out"))
        except requests.exceptions.RequestException as e:
            logger.warning("Shopify request failed", endpoint=self.endpoint, error=str(e))
            return Failure(DownstreamUnavailable(message=f"shopify request failed: {e}"))

        if resp.status_code != 200:
            logger.warning(
                "Shopify returned an error status",
                status=resp.status_code,
                body=resp.text[:500],
            )
            return Failure(
                DownstreamUnavailable(
                    message=f"shopify API error: status {resp.status_code}"
                )
            )

        try:
            payload = resp.json()
        except ValueError:
            return Failure(DownstreamUnavailable(message="shopify returned invalid JSON"))

        if not isinstance(payload, dict):
            return Failure(DownstreamUnavailable(message="shopify returned invalid JSON"))

        errors = payload.get("errors")
        if errors:
            messages = "; ".join(
                str(e.get("message", e)) if isinstance(e, dict) else str(e)
                for e in errors
            )
            logger.warning("Shopify GraphQL errors", errors=messages)
            return Failure(DownstreamUnavailable(message=f"graphql errors: {messages}"))

        data = payload.get("data")
        if not isinstance(data, dict):
            return Failure(DownstreamUnavailable(message="shopify response has no data"))
        return Success(data)
