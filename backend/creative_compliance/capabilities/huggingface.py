"""HuggingFace Inference provider — BART-MNLI entailment and DETR object detection.

Talks to the hosted inference API over httpx. Transient failures (transport
errors, 429, 503 while a model is loading) are retried with exponential
backoff via tenacity; anything still failing surfaces as CapabilityError.
"""

from typing import Any, Optional

import httpx
import structlog
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from creative_compliance.capabilities.base import CapabilityError, CapabilityProvider
from creative_compliance.capabilities.models import (
    EntailmentResult,
    PackshotAnalysis,
    PeopleDetection,
)

logger = structlog.get_logger()

HF_INFERENCE_URL = "https://api-inference.huggingface.co/models"
DEFAULT_ENTAILMENT_ENDPOINT = f"{HF_INFERENCE_URL}/facebook/bart-large-mnli"
DEFAULT_DETECTION_ENDPOINT = f"{HF_INFERENCE_URL}/facebook/detr-resnet-50"

PERSON_THRESHOLD = 0.7
PRODUCT_THRESHOLD = 0.5

# COCO labels DETR reports for things that look like retail products
PRODUCT_LABELS = (
    "bottle", "wine glass", "cup", "bowl", "banana", "apple", "sandwich",
    "orange", "broccoli", "carrot", "hot dog", "pizza", "donut", "cake",
    "potted plant", "vase", "teddy bear", "handbag", "suitcase",
)

_TRANSIENT_STATUS = {429, 502, 503, 504}


class _TransientHTTPError(Exception):
    """Retryable upstream status (rate limited or model still loading)."""


class HuggingFaceProvider(CapabilityProvider):
    """Entailment, people detection and packshot counting via HuggingFace."""

    def __init__(
        self,
        api_token: str = "",
        entailment_endpoint: str = "",
        detection_endpoint: str = "",
        timeout: float = 20.0,
        max_retries: int = 2,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.api_token = api_token
        self.entailment_endpoint = entailment_endpoint
        self.detection_endpoint = detection_endpoint
        self.timeout = timeout
        self.max_retries = max_retries
        self._client = client
        self._owns_client = client is None

    @property
    def name(self) -> str:
        return "huggingface"

    def _get_http_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout)
        return self._client

    def _headers(self, content_type: Optional[str] = None) -> dict[str, str]:
        headers = {}
        if self.api_token:
            headers["Authorization"] = f"Bearer {self.api_token}"
        if content_type:
            headers["Content-Type"] = content_type
        return headers

    async def _post(self, url: str, **kwargs: Any) -> Any:
        """POST with retry on transient failures. Returns decoded JSON."""
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.max_retries + 1),
            wait=wait_exponential(multiplier=1, min=1, max=10),
            retry=retry_if_exception_type((httpx.TransportError, _TransientHTTPError)),
            before_sleep=lambda retry_state: logger.warning(
                "huggingface_retry",
                url=url,
                attempt=retry_state.attempt_number,
                wait=retry_state.next_action.sleep,
            ),
            reraise=True,
        )
        try:
            async for attempt in retrying:
                with attempt:
                    response = await self._get_http_client().post(url, **kwargs)
                    if response.status_code in _TRANSIENT_STATUS:
                        raise _TransientHTTPError(f"HTTP {response.status_code}")
                    response.raise_for_status()
                    data = response.json()
        except (httpx.HTTPError, _TransientHTTPError, ValueError) as e:
            raise CapabilityError(f"HuggingFace request failed: {e}", provider=self.name) from e

        if isinstance(data, dict) and "error" in data:
            raise CapabilityError(f"HuggingFace error: {data['error']}", provider=self.name)
        return data

    # ── Natural language inference (BART-MNLI) ──

    async def check_entailment(self, premise: str, hypothesis: str) -> EntailmentResult:
        if not self.entailment_endpoint:
            raise self._unavailable("check_entailment")

        data = await self._post(
            self.entailment_endpoint,
            headers=self._headers(),
            json={
                "inputs": premise,
                "parameters": {
                    "candidate_labels": [hypothesis, f"NOT: {hypothesis}"],
                    "multi_label": False,
                },
            },
        )
        scores = self._label_scores(data)
        if hypothesis not in scores:
            raise CapabilityError("Entailment response missing hypothesis label", provider=self.name)

        confidence = scores[hypothesis]
        others = [s for label, s in scores.items() if label != hypothesis]
        return EntailmentResult(
            entails=all(confidence > s for s in others),
            confidence=min(max(confidence, 0.0), 1.0),
            provider="huggingface_bart",
        )

    @staticmethod
    def _label_scores(data: Any) -> dict[str, float]:
        """Normalize zero-shot responses: {labels, scores} or [{label, score}, ...]."""
        if isinstance(data, list) and data and isinstance(data[0], dict) and "labels" in data[0]:
            data = data[0]
        if isinstance(data, dict) and "labels" in data and "scores" in data:
            return dict(zip(data["labels"], (float(s) for s in data["scores"])))
        if isinstance(data, list):
            return {
                item["label"]: float(item["score"])
                for item in data
                if isinstance(item, dict) and "label" in item and "score" in item
            }
        return {}

    # ── Object detection (DETR) ──

    async def _detect_objects(self, image: bytes, threshold: float) -> list[dict]:
        if not self.detection_endpoint:
            raise self._unavailable("object_detection")

        data = await self._post(
            self.detection_endpoint,
            headers=self._headers("application/octet-stream"),
            content=image,
        )
        if not isinstance(data, list):
            raise CapabilityError("Unexpected detection response", provider=self.name)
        return [
            d for d in data
            if isinstance(d, dict) and float(d.get("score", 0)) >= threshold
        ]

    async def detect_people(self, image: bytes) -> PeopleDetection:
        detections = await self._detect_objects(image, PERSON_THRESHOLD)
        people = [d for d in detections if d.get("label") == "person"]
        return PeopleDetection(
            detected=bool(people),
            count=len(people),
            confidence=max((float(p["score"]) for p in people), default=0.0),
            provider="huggingface_detr",
        )

    async def analyze_packshots(self, image: bytes) -> PackshotAnalysis:
        detections = await self._detect_objects(image, PRODUCT_THRESHOLD)
        products = [
            d for d in detections
            if any(label in str(d.get("label", "")).lower() for label in PRODUCT_LABELS)
        ]
        return PackshotAnalysis(
            count=len(products),
            has_lead=bool(products),
            issues=[],
            provider="huggingface_detr",
        )

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None
