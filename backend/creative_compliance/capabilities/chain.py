"""Capability chain — ordered provider fallback injected by the host.

The chain is itself a CapabilityProvider: each call goes to the providers in
the order the host gave, and the first success wins. Unsupported operations
are skipped silently; failures and timeouts are logged and the next provider
is tried.
"""

import asyncio
from typing import Any, Awaitable, Callable, Optional

import structlog

from creative_compliance.capabilities.base import (
    CapabilityError,
    CapabilityProvider,
    CapabilityUnavailable,
)
from creative_compliance.capabilities.models import (
    EntailmentResult,
    LockupVerification,
    PackshotAnalysis,
    PeopleDetection,
)

logger = structlog.get_logger()


class CapabilityChain(CapabilityProvider):
    """First-success fallback over a list of providers."""

    def __init__(self, providers: list[CapabilityProvider], timeout: Optional[float] = None):
        self.providers = list(providers)
        self.timeout = timeout

    @property
    def name(self) -> str:
        return "chain"

    @property
    def provider_names(self) -> list[str]:
        return [p.name for p in self.providers]

    async def _first_success(
        self,
        operation: str,
        call: Callable[[CapabilityProvider], Awaitable[Any]],
    ) -> Any:
        failures: list[str] = []
        for provider in self.providers:
            try:
                if self.timeout:
                    return await asyncio.wait_for(call(provider), timeout=self.timeout)
                return await call(provider)
            except CapabilityUnavailable:
                continue
            except asyncio.TimeoutError:
                logger.warning(
                    "capability_provider_failed",
                    provider=provider.name,
                    operation=operation,
                    error="timeout",
                )
                failures.append(f"{provider.name}: timeout")
            except CapabilityError as e:
                logger.warning(
                    "capability_provider_failed",
                    provider=provider.name,
                    operation=operation,
                    error=str(e),
                )
                failures.append(f"{provider.name}: {e}")

        if not failures:
            raise CapabilityUnavailable(f"No provider supports {operation}", provider=self.name)
        raise CapabilityError(f"All providers failed for {operation}: {'; '.join(failures)}", provider=self.name)

    async def detect_people(self, image: bytes) -> PeopleDetection:
        return await self._first_success("detect_people", lambda p: p.detect_people(image))

    async def verify_lockup(self, image: bytes, lockup_kind: str) -> LockupVerification:
        return await self._first_success("verify_lockup", lambda p: p.verify_lockup(image, lockup_kind))

    async def analyze_packshots(self, image: bytes) -> PackshotAnalysis:
        return await self._first_success("analyze_packshots", lambda p: p.analyze_packshots(image))

    async def check_entailment(self, premise: str, hypothesis: str) -> EntailmentResult:
        return await self._first_success(
            "check_entailment", lambda p: p.check_entailment(premise, hypothesis)
        )

    async def aclose(self) -> None:
        for provider in self.providers:
            await provider.aclose()
