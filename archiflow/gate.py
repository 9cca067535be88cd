"""
Access gate for metered operations.

Every AI endpoint goes through three stages, in this order:

1. ``authenticate``: bearer token -> Principal (401 on failure)
2. ``throttle``: per-principal fixed window (429 on failure)
3. ``charge``: conditional debit of the operation's cost (402/503)

A caller that fails a stage never reaches the next one, so an
unauthenticated request leaves no rate window behind and a throttled
request never writes to the ledger. Credits are not refunded when the
protected operation fails afterwards.
"""

import asyncio
from dataclasses import dataclass
from typing import Any, Callable

from .auth import IdentityVerifier, Principal, extract_bearer_token
from .errors import RateLimited, UpstreamTimeout, UpstreamUnavailable
from .services.ledger import CreditLedger
from .services.ratelimit import FixedWindowRateLimiter
from .utils.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class GatePass:
    principal: Principal
    cost: int
    remaining: int

    @property
    def uid(self) -> str:
        return self.principal.uid


class AccessGate:
    def __init__(
        self,
        verifier: IdentityVerifier | None,
        limiter: FixedWindowRateLimiter,
        ledger: CreditLedger | None,
        timeout: float = 10.0,
    ):
        self.verifier = verifier
        self.limiter = limiter
        self.ledger = ledger
        self.timeout = timeout

    async def _call(self, service: str, fn: Callable[..., Any], *args: Any) -> Any:
        # The SDK calls block; a timed out call is abandoned, its thread runs on
        try:
            return await asyncio.wait_for(asyncio.to_thread(fn, *args), timeout=self.timeout)
        except asyncio.TimeoutError:
            logger.error("Upstream call timed out", service=service, timeout=self.timeout)
            raise UpstreamTimeout(service, self.timeout) from None

    async def authenticate(self, authorization: str | None) -> Principal:
        token = extract_bearer_token(authorization)
        if self.verifier is None:
            raise UpstreamUnavailable("identity provider", "Firebase not configured")
        return await self._call("identity provider", self.verifier.verify, token)

    def throttle(self, principal: Principal) -> None:
        decision = self.limiter.hit(principal.uid)
        if not decision.allowed:
            logger.warning("Rate limit exceeded", uid=principal.uid, count=decision.count, limit=decision.limit)
            raise RateLimited(
                limit=decision.limit,
                window_seconds=self.limiter.window_ms / 1000,
                retry_after=decision.retry_after,
            )

    async def charge(self, principal: Principal, cost: int) -> GatePass:
        """Throttle, then debit ``cost`` credits. The caller is already authenticated."""
        self.throttle(principal)
        if self.ledger is None:
            raise UpstreamUnavailable("database", "Database not configured")
        debit = await self._call("database", self.ledger.debit, principal.uid, cost)
        return GatePass(principal=principal, cost=cost, remaining=debit.remaining)

    async def admit(self, authorization: str | None, cost: int) -> GatePass:
        """Run the whole chain for one metered request."""
        principal = await self.authenticate(authorization)
        return await self.charge(principal, cost)
