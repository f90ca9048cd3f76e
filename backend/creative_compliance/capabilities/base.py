"""Capability provider interface — the engine's only window onto AI services.

A provider implements any subset of the four operations. Operations it does
not support raise CapabilityUnavailable; operations that were attempted and
failed (network, quota, unparseable output after retries) raise
CapabilityError. The engine never sees provider-specific types.
"""

from abc import ABC, abstractmethod

from creative_compliance.capabilities.models import (
    EntailmentResult,
    LockupVerification,
    PackshotAnalysis,
    PeopleDetection,
)


class CapabilityError(Exception):
    """A capability call was attempted and failed."""

    def __init__(self, message: str, provider: str = ""):
        super().__init__(message)
        self.provider = provider


class CapabilityUnavailable(CapabilityError):
    """The provider does not offer this capability (or is not configured)."""


class CapabilityProvider(ABC):
    """Abstract base for AI capability providers."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Provider name, recorded on results and in logs."""
        ...

    def _unavailable(self, operation: str) -> CapabilityUnavailable:
        return CapabilityUnavailable(f"{self.name} does not support {operation}", provider=self.name)

    async def detect_people(self, image: bytes) -> PeopleDetection:
        raise self._unavailable("detect_people")

    async def verify_lockup(self, image: bytes, lockup_kind: str) -> LockupVerification:
        raise self._unavailable("verify_lockup")

    async def analyze_packshots(self, image: bytes) -> PackshotAnalysis:
        raise self._unavailable("analyze_packshots")

    async def check_entailment(self, premise: str, hypothesis: str) -> EntailmentResult:
        raise self._unavailable("check_entailment")

    async def aclose(self) -> None:
        """Release network resources. Providers without any may ignore this."""
        return None
