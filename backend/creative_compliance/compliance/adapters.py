"""Adapters from host drawing-surface state to the neutral creative model.

The editor serialises its canvas with Fabric.js ``toJSON()``; custom
properties (``isValueTile``, ``customName``, ...) are included by the host.
Only this module knows that format; the engine sees CreativeSnapshot.
"""

from typing import Any, Optional, Union

from pydantic import ValidationError

from creative_compliance.compliance.creative import (
    DEFAULT_FORMAT_ID,
    CreativeContext,
    CreativeSnapshot,
    Element,
    ElementKind,
)

TEXT_TYPES = {"i-text", "text", "textbox"}
IMAGE_TYPES = {"image"}

# Fabric property → Element field, for flags and free-form attributes copied as-is
_COPIED_PROPERTIES = {
    "isBackground": "is_background",
    "isSafeZone": "is_safe_zone",
    "isLogo": "is_logo",
    "isPackshot": "is_packshot",
    "isLeadPackshot": "is_lead_packshot",
    "isValueTile": "is_value_tile",
    "valueTileType": "value_tile_type",
    "isDrinkaware": "is_drinkaware",
    "isTag": "is_tag",
    "hasMoved": "has_moved",
    "customName": "custom_name",
    "role": "role",
    "fontWeight": "font_weight",
}


def fabric_kind(object_type: Optional[str]) -> ElementKind:
    kind = (object_type or "").lower()
    if kind in TEXT_TYPES:
        return ElementKind.TEXT
    if kind in IMAGE_TYPES:
        return ElementKind.IMAGE
    return ElementKind.SHAPE


def _origin_offset(origin: Any, extent: float) -> float:
    if origin == "center":
        return extent / 2
    if origin in ("right", "bottom"):
        return extent
    return 0.0


def element_from_fabric(obj: dict, index: int) -> dict:
    """Project one Fabric object into Element fields (unvalidated)."""
    scale_x = obj.get("scaleX") or 1.0
    scale_y = obj.get("scaleY") or 1.0
    width = obj.get("width") or 0.0
    height = obj.get("height") or 0.0
    kind = fabric_kind(obj.get("type"))

    fields: dict[str, Any] = {
        "id": str(obj.get("id") or obj.get("_id") or f"obj-{index}"),
        "kind": kind,
        "x": (obj.get("left") or 0.0) - _origin_offset(obj.get("originX"), width * scale_x),
        "y": (obj.get("top") or 0.0) - _origin_offset(obj.get("originY"), height * scale_y),
        "width": width,
        "height": height,
        "scale_x": scale_x,
        "scale_y": scale_y,
        "angle": obj.get("angle") or 0.0,
    }

    fill = obj.get("fill")
    if isinstance(fill, str) and fill:
        fields["fill"] = fill

    if kind == ElementKind.TEXT:
        fields["text"] = obj.get("text") or ""
        if obj.get("fontSize"):
            fields["font_size"] = obj["fontSize"]

    src = obj.get("src")
    if kind == ElementKind.IMAGE and isinstance(src, str) and src.startswith("data:"):
        fields["data_url"] = src

    for fabric_name, field in _COPIED_PROPERTIES.items():
        value = obj.get(fabric_name)
        if value is not None:
            fields[field] = value

    if obj.get("isLEPTag"):
        fields["is_tag"] = True
    return fields


def snapshot_from_fabric(
    canvas_json: dict,
    format_id: Optional[str] = None,
    context: Union[CreativeContext, dict, None] = None,
) -> CreativeSnapshot:
    """Build a CreativeSnapshot from a Fabric canvas JSON document.

    Args:
        canvas_json: Output of ``canvas.toJSON([...custom props])``
        format_id: Format preset id (defaults to instagram-feed)
        context: Campaign context; the canvas background fills in a missing colour

    Raises:
        ValueError: if the canvas or any object holds values the model rejects
    """
    if not isinstance(canvas_json, dict):
        raise ValueError("Canvas JSON must be an object")
    objects = canvas_json.get("objects") or []
    if not isinstance(objects, list):
        raise ValueError("Canvas 'objects' must be a list")

    if isinstance(context, CreativeContext):
        context_data = context.model_dump(exclude_unset=True)
    else:
        context_data = dict(context or {})

    background = canvas_json.get("background") or canvas_json.get("backgroundColor")
    if isinstance(background, str) and background and not (
        "background_color" in context_data or "backgroundColor" in context_data
    ):
        context_data["background_color"] = background

    try:
        return CreativeSnapshot(
            format=format_id or DEFAULT_FORMAT_ID,
            elements=[
                Element.model_validate(element_from_fabric(obj, i))
                for i, obj in enumerate(objects)
                if isinstance(obj, dict)
            ],
            context=CreativeContext.model_validate(context_data),
        )
    except ValidationError as e:
        raise ValueError(f"Invalid canvas for compliance: {e}") from e
