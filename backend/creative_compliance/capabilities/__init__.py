"""AI capability interface — providers, the fallback chain and image loading."""

from creative_compliance.capabilities.base import (
    CapabilityError,
    CapabilityProvider,
    CapabilityUnavailable,
)
from creative_compliance.capabilities.chain import CapabilityChain
from creative_compliance.capabilities.factory import build_capability_chain, build_image_loader
from creative_compliance.capabilities.huggingface import HuggingFaceProvider
from creative_compliance.capabilities.images import ImageLoader, ImageLoadError
from creative_compliance.capabilities.llm_vision import LLMVisionProvider
from creative_compliance.capabilities.models import (
    EntailmentResult,
    LockupVerification,
    PackshotAnalysis,
    PeopleDetection,
)

__all__ = [
    "CapabilityError",
    "CapabilityProvider",
    "CapabilityUnavailable",
    "CapabilityChain",
    "build_capability_chain",
    "build_image_loader",
    "HuggingFaceProvider",
    "ImageLoader",
    "ImageLoadError",
    "LLMVisionProvider",
    "EntailmentResult",
    "LockupVerification",
    "PackshotAnalysis",
    "PeopleDetection",
]
