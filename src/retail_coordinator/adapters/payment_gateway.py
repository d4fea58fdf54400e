"""Payment gateway adapters."""

import logging
import random
from dataclasses import dataclass, field
from uuid import uuid4

import httpx

from retail_coordinator.domain.orders import PaymentResult
from retail_coordinator.errors import TransientError
from retail_coordinator.services.payments import PaymentGateway

_logger = logging.getLogger(__name__)


@dataclass
class HttpxPaymentGateway(PaymentGateway):
    """Payment gateway reached over HTTP with httpx."""

    base_url: str
    api_key: str
    http_client: httpx.AsyncClient

    @classmethod
    def create(cls, base_url: str, api_key: str) -> "HttpxPaymentGateway":
        """Create a gateway client with a managed httpx session."""
        return cls(
            base_url=base_url.rstrip("/"),
            api_key=api_key,
            http_client=httpx.AsyncClient(),
        )

    async def authorize(self, amount: float, method: str, order_id: str) -> PaymentResult:
        """Authorize and capture; declines come back as unsuccessful results."""
        try:
            response = await self.http_client.post(
                f"{self.base_url}/authorizations",
                json={"amount": amount, "method": method, "order_id": order_id},
                headers=self._headers(),
                timeout=15,
            )
        except httpx.HTTPError as exc:
            raise TransientError(f"Payment gateway unreachable: {exc}") from exc

        if response.status_code >= 500:
            raise TransientError(f"Payment gateway error {response.status_code}")
        if response.status_code == httpx.codes.PAYMENT_REQUIRED:
            body = response.json()
            return PaymentResult(success=False, error=str(body.get("error", "Payment declined")))
        response.raise_for_status()
        body = response.json()
        if not body.get("approved"):
            return PaymentResult(success=False, error=str(body.get("error", "Payment declined")))
        return PaymentResult(success=True, transaction_id=str(body["transaction_id"]))

    async def refund(self, transaction_id: str, amount: float) -> None:
        """Refund a captured payment."""
        response = await self.http_client.post(
            f"{self.base_url}/refunds",
            json={"transaction_id": transaction_id, "amount": amount},
            headers=self._headers(),
            timeout=15,
        )
        response.raise_for_status()

    async def close(self) -> None:
        """Close the underlying HTTP session."""
        await self.http_client.aclose()

    def _headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.api_key}"}


@dataclass
class SimulatedPaymentGateway(PaymentGateway):
    """Local gateway that approves a fixed share of attempts."""

    success_rate: float = 0.85
    rng: random.Random = field(default_factory=random.Random)
    refunded: list[str] = field(default_factory=list)

    async def authorize(self, amount: float, method: str, order_id: str) -> PaymentResult:
        if self.rng.random() >= self.success_rate:
            _logger.info("Simulated decline for order %s via %s", order_id, method)
            return PaymentResult(success=False, error="Payment declined")
        return PaymentResult(success=True, transaction_id=f"txn_{uuid4()}")

    async def refund(self, transaction_id: str, amount: float) -> None:
        self.refunded.append(transaction_id)
