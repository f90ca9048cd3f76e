"""API request models."""

from typing import Any, Optional

from pydantic import Field

from creative_compliance.compliance.creative import CreativeContext
from creative_compliance.compliance.models import CamelModel


class FabricEvaluationRequest(CamelModel):
    """Evaluate a serialised drawing-surface canvas directly."""

    canvas: dict[str, Any] = Field(
        ...,
        description="Fabric.js canvas JSON including custom element properties",
        examples=[{"background": "#1A1A1A", "objects": [{"type": "i-text", "text": "Zero Sugar", "left": 540, "top": 270}]}],
    )
    format_id: Optional[str] = Field(default=None, description="Format preset id")
    context: Optional[CreativeContext] = None
    full: bool = Field(default=False, description="Run semantic and vision phases too")
    deadline: Optional[float] = Field(default=None, gt=0, description="Seconds allowed for the evaluation")
