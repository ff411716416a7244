"""Loyalty program collaborator.

Points are accrued after a successful stock debit.  The call is a
post-commit hook: callers treat ``LoyaltyError`` as non-fatal.
"""

from __future__ import annotations

from typing import Optional, Protocol

import httpx
import structlog
from django.conf import settings

from modules.orders.dtos import LoyaltyAccrual

logger = structlog.get_logger(__name__)


class LoyaltyError(Exception):
    """The loyalty service rejected the accrual or could not be reached."""


class ILoyaltyProgram(Protocol):
    def earn_points(self, owner_id: str, accrual: LoyaltyAccrual) -> int: ...


class DisabledLoyaltyProgram:
    """Used when no loyalty service is configured: accrues nothing."""

    def earn_points(self, owner_id: str, accrual: LoyaltyAccrual) -> int:
        logger.debug("loyalty.disabled", owner_id=owner_id, order_id=accrual.order_id)
        return 0


class HttpLoyaltyProgram:
    """
    Client for the loyalty service REST API.

    The order id is sent as ``Idempotency-Key`` so a retried accrual for the
    same order is not counted twice by the service.
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 5.0,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.client = httpx.Client(
            base_url=base_url,
            timeout=httpx.Timeout(timeout),
            transport=transport,
        )

    def close(self) -> None:
        self.client.close()

    def earn_points(self, owner_id: str, accrual: LoyaltyAccrual) -> int:
        """
        Posts the accrual and returns the points earned.

        Raises:
            LoyaltyError: timeout, transport error, error status or a body
                without ``pointsEarned``.
        """
        payload = accrual.model_dump(mode="json", by_alias=True)
        headers = {"Idempotency-Key": accrual.order_id}
        log = logger.bind(owner_id=owner_id, order_id=accrual.order_id)

        try:
            response = self.client.post(
                f"/v1/accounts/{owner_id}/earn", json=payload, headers=headers
            )
            response.raise_for_status()
            points = int(response.json()["pointsEarned"])
        except httpx.HTTPStatusError as exc:
            log.warning("loyalty.rejected", status_code=exc.response.status_code)
            raise LoyaltyError(
                f"Loyalty service answered {exc.response.status_code}."
            ) from exc
        except httpx.HTTPError as exc:
            log.error("loyalty.unreachable", error=str(exc))
            raise LoyaltyError("Loyalty service unreachable.") from exc
        except (KeyError, TypeError, ValueError) as exc:
            log.error("loyalty.bad_response", error=str(exc))
            raise LoyaltyError("Loyalty service returned an unexpected body.") from exc

        log.info("loyalty.points_earned", points=points)
        return points


def build_loyalty_program() -> ILoyaltyProgram:
    base_url = getattr(settings, "LOYALTY_SERVICE_URL", "")
    if not base_url:
        return DisabledLoyaltyProgram()
    return HttpLoyaltyProgram(
        base_url=base_url,
        timeout=getattr(settings, "LOYALTY_TIMEOUT_SECONDS", 5.0),
    )
