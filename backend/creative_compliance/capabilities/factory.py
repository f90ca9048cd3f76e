"""Build the host's capability chain from configuration.

Providers whose keys are absent are left out, so a bare environment yields
an empty chain and every AI-backed check degrades to "no finding".
"""

from typing import Optional

import structlog

from creative_compliance.capabilities.base import CapabilityProvider
from creative_compliance.capabilities.chain import CapabilityChain
from creative_compliance.capabilities.huggingface import (
    DEFAULT_DETECTION_ENDPOINT,
    DEFAULT_ENTAILMENT_ENDPOINT,
    HuggingFaceProvider,
)
from creative_compliance.capabilities.images import ImageLoader
from creative_compliance.capabilities.llm_vision import LLMVisionProvider
from creative_compliance.config import Settings, get_settings

logger = structlog.get_logger()


def build_providers(settings: Settings) -> list[CapabilityProvider]:
    """Providers in fallback order: HuggingFace (cheap, specialised) first, then the LLM."""
    providers: list[CapabilityProvider] = []

    entailment = settings.ENTAILMENT_ENDPOINT or (DEFAULT_ENTAILMENT_ENDPOINT if settings.HF_API_TOKEN else "")
    detection = settings.DETECTION_ENDPOINT or (DEFAULT_DETECTION_ENDPOINT if settings.HF_API_TOKEN else "")
    if entailment or detection:
        providers.append(HuggingFaceProvider(
            api_token=settings.HF_API_TOKEN,
            entailment_endpoint=entailment,
            detection_endpoint=detection,
            timeout=settings.CAPABILITY_TIMEOUT_SECONDS,
            max_retries=settings.CAPABILITY_MAX_RETRIES,
        ))

    if settings.OPENAI_API_KEY:
        providers.append(LLMVisionProvider(
            api_key=settings.OPENAI_API_KEY,
            model_name=settings.VISION_MODEL,
            base_url=settings.VISION_ENDPOINT,
            timeout=settings.CAPABILITY_TIMEOUT_SECONDS,
        ))

    return providers


def build_capability_chain(settings: Optional[Settings] = None) -> CapabilityChain:
    settings = settings or get_settings()
    providers = build_providers(settings)
    logger.info("capability_chain_built", providers=[p.name for p in providers])
    # Per-provider timeout covers retries plus one slow attempt
    return CapabilityChain(
        providers,
        timeout=settings.CAPABILITY_TIMEOUT_SECONDS * (settings.CAPABILITY_MAX_RETRIES + 1),
    )


def build_image_loader(settings: Optional[Settings] = None) -> ImageLoader:
    settings = settings or get_settings()
    return ImageLoader(
        cdn_transform_endpoint=settings.CDN_TRANSFORM_ENDPOINT,
        timeout=settings.CAPABILITY_TIMEOUT_SECONDS,
    )
