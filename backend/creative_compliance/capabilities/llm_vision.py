"""Multimodal LLM provider — JSON-prompted vision checks via langchain-openai.

Sends the creative (as an inline image) with a task prompt and parses a JSON
answer. LLMs wrap JSON in code fences, add trailing commas or prose; the
parser recovers from those before giving up.
"""

import base64
import json
import re
from typing import Any, Optional

import structlog
from langchain_core.messages import HumanMessage, SystemMessage
from langchain_openai import ChatOpenAI
from tenacity import retry, stop_after_attempt, wait_exponential

from creative_compliance.capabilities.base import CapabilityError, CapabilityProvider
from creative_compliance.capabilities.models import (
    EntailmentResult,
    LockupVerification,
    PackshotAnalysis,
    PeopleDetection,
)

logger = structlog.get_logger()

SYSTEM_PROMPT = (
    "You are a retail media compliance reviewer. "
    "Answer only with a single JSON object matching the requested shape."
)

LOCKUP_PROMPTS = {
    "drinkaware": """Analyze this retail media creative image for Drinkaware compliance:

1. Is the Drinkaware logo (text "drinkaware.co.uk") visible?
2. Is it legible and not obscured by other elements?
3. Is it in a contrasting color (black or white against the background)?
4. Estimate its approximate height in pixels relative to the image.

Respond in JSON format:
{
  "logoVisible": boolean,
  "isLegible": boolean,
  "hasContrast": boolean,
  "estimatedHeightPercent": number (0-100),
  "issues": string[]
}""",
}

PACKSHOT_PROMPT = """Analyze this retail media creative for product packshots:

1. How many distinct product images/packshots are visible?
2. Is there a clearly prominent/lead product (largest or most central)?
3. Are all products clearly visible and not cropped?

Respond in JSON format:
{
  "packshotCount": number,
  "hasLeadProduct": boolean,
  "leadProductDescription": string,
  "allProductsVisible": boolean,
  "issues": string[]
}"""

PEOPLE_PROMPT = """Does this image contain any people (faces, bodies, hands or silhouettes)?

Respond in JSON format:
{
  "containsPeople": boolean,
  "count": number,
  "confidence": number (0-1),
  "description": string
}"""

ENTAILMENT_PROMPT = """Premise: "{premise}"
Hypothesis: "{hypothesis}"

Does the premise entail the hypothesis?

Respond in JSON format:
{{
  "entails": boolean,
  "confidence": number (0-1)
}}"""

UNPARSEABLE_ISSUE = "Could not parse vision response"


# ── JSON recovery ──

def strip_code_fences(text: str) -> str:
    """Remove markdown code fences from LLM output."""
    cleaned = text.strip()
    if cleaned.startswith("```json"):
        cleaned = cleaned[7:]
    elif cleaned.startswith("```"):
        cleaned = cleaned[3:]
    if cleaned.endswith("```"):
        cleaned = cleaned[:-3]
    return cleaned.strip()


def fix_llm_json(text: str) -> str:
    """Remove trailing commas before } or ]."""
    return re.sub(r",\s*([}\]])", r"\1", text)


def extract_json_object(text: str) -> Optional[str]:
    """Find and extract the first complete JSON object from text."""
    start = text.find("{")
    if start < 0:
        return None
    # Track brace depth outside of strings
    depth, in_string, escape_next = 0, False, False
    for i in range(start, len(text)):
        ch = text[i]
        if escape_next:
            escape_next = False
        elif ch == "\\":
            escape_next = True
        elif ch == '"':
            in_string = not in_string
        elif not in_string and ch == "{":
            depth += 1
        elif not in_string and ch == "}":
            depth -= 1
            if depth == 0:
                return text[start:i + 1]
    return None


def parse_llm_json(text: str) -> Optional[dict]:
    """Best-effort JSON object extraction; None when nothing parses."""
    cleaned = strip_code_fences(text or "")
    candidates = [cleaned, fix_llm_json(cleaned)]
    extracted = extract_json_object(cleaned)
    if extracted:
        candidates.append(fix_llm_json(extracted))

    for candidate in candidates:
        try:
            result = json.loads(candidate)
        except json.JSONDecodeError:
            continue
        if isinstance(result, dict):
            return result

    logger.warning("llm_json_parse_failed", response_length=len(text or ""), response_preview=cleaned[:200])
    return None


def sniff_mime_type(image: bytes) -> str:
    if image.startswith(b"\x89PNG"):
        return "image/png"
    if image.startswith(b"\xff\xd8"):
        return "image/jpeg"
    if image.startswith((b"GIF87a", b"GIF89a")):
        return "image/gif"
    if image[:4] == b"RIFF" and image[8:12] == b"WEBP":
        return "image/webp"
    return "image/png"


def _as_data_url(image: bytes) -> str:
    return f"data:{sniff_mime_type(image)};base64,{base64.b64encode(image).decode('ascii')}"


def _issues(value: Any) -> list[str]:
    if not isinstance(value, list):
        return []
    return [str(v) for v in value if v]


class LLMVisionProvider(CapabilityProvider):
    """Lockup verification, people detection, packshot analysis and entailment via a chat model."""

    def __init__(
        self,
        api_key: str = "",
        model_name: str = "gpt-4o-mini",
        base_url: str = "",
        timeout: float = 20.0,
        max_output_tokens: int = 512,
        llm: Any = None,
    ):
        self.api_key = api_key
        self.model_name = model_name
        self.base_url = base_url
        self.timeout = timeout
        self.max_output_tokens = max_output_tokens
        self._llm = llm

    @property
    def name(self) -> str:
        return "llm_vision"

    @property
    def llm(self):
        """Lazy-initialize the chat model client."""
        if self._llm is None:
            self._llm = self._create_llm()
        return self._llm

    def _create_llm(self):
        kwargs = {
            "model": self.model_name,
            "api_key": self.api_key,
            "temperature": 0,
            "max_tokens": self.max_output_tokens,
            "timeout": self.timeout,
            "model_kwargs": {"response_format": {"type": "json_object"}},
        }
        if self.base_url:
            kwargs["base_url"] = self.base_url
        return ChatOpenAI(**kwargs)

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=30),
        reraise=True,
        before_sleep=lambda retry_state: logger.warning(
            "llm_retry",
            attempt=retry_state.attempt_number,
            wait=retry_state.next_action.sleep,
        ),
    )
    async def _call_llm(self, prompt: str, image: Optional[bytes] = None) -> str:
        """Call the chat model with retry logic. Returns the raw text answer."""
        if image is None:
            content: Any = prompt
        else:
            content = [
                {"type": "text", "text": prompt},
                {"type": "image_url", "image_url": {"url": _as_data_url(image)}},
            ]
        response = await self.llm.ainvoke([SystemMessage(content=SYSTEM_PROMPT), HumanMessage(content=content)])
        return response.content if isinstance(response.content, str) else str(response.content)

    async def _ask(self, operation: str, prompt: str, image: Optional[bytes] = None) -> Optional[dict]:
        try:
            raw = await self._call_llm(prompt, image)
        except Exception as e:
            raise CapabilityError(f"{operation} failed: {e}", provider=self.name) from e
        return parse_llm_json(raw)

    async def verify_lockup(self, image: bytes, lockup_kind: str) -> LockupVerification:
        prompt = LOCKUP_PROMPTS.get(lockup_kind)
        if prompt is None:
            raise self._unavailable(f"verify_lockup({lockup_kind})")

        result = await self._ask("verify_lockup", prompt, image)
        if result is None:
            return LockupVerification(valid=False, issues=[UNPARSEABLE_ISSUE], provider=self.name)

        valid = bool(result.get("logoVisible") and result.get("isLegible") and result.get("hasContrast"))
        return LockupVerification(valid=valid, issues=_issues(result.get("issues")), provider=self.name)

    async def detect_people(self, image: bytes) -> PeopleDetection:
        result = await self._ask("detect_people", PEOPLE_PROMPT, image)
        if result is None:
            raise CapabilityError(UNPARSEABLE_ISSUE, provider=self.name)

        detected = bool(result.get("containsPeople"))
        try:
            confidence = float(result.get("confidence", 0.8 if detected else 0.0))
            count = int(result.get("count", 1 if detected else 0))
        except (TypeError, ValueError):
            confidence, count = (0.8, 1) if detected else (0.0, 0)
        return PeopleDetection(
            detected=detected,
            count=max(count, 0),
            confidence=min(max(confidence, 0.0), 1.0),
            provider=self.name,
        )

    async def analyze_packshots(self, image: bytes) -> PackshotAnalysis:
        result = await self._ask("analyze_packshots", PACKSHOT_PROMPT, image)
        if result is None:
            raise CapabilityError(UNPARSEABLE_ISSUE, provider=self.name)

        try:
            count = int(result.get("packshotCount") or 0)
        except (TypeError, ValueError):
            count = 0
        return PackshotAnalysis(
            count=max(count, 0),
            has_lead=bool(result.get("hasLeadProduct")),
            issues=_issues(result.get("issues")),
            provider=self.name,
        )

    async def check_entailment(self, premise: str, hypothesis: str) -> EntailmentResult:
        prompt = ENTAILMENT_PROMPT.format(premise=premise.replace('"', "'"), hypothesis=hypothesis)
        result = await self._ask("check_entailment", prompt)
        if result is None:
            raise CapabilityError(UNPARSEABLE_ISSUE, provider=self.name)

        try:
            confidence = float(result.get("confidence", 0.0))
        except (TypeError, ValueError):
            confidence = 0.0
        return EntailmentResult(
            entails=bool(result.get("entails")),
            confidence=min(max(confidence, 0.0), 1.0),
            provider=self.name,
        )
