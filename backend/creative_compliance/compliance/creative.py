"""Creative model — the neutral snapshot the engine evaluates.

The host projects its drawing state into a CreativeSnapshot (see
``adapters.snapshot_from_fabric``). Malformed input is rejected here, at the
boundary, so detectors can rely on well-typed elements.
"""

from enum import Enum
from typing import Any, Literal, Optional

from pydantic import Field, field_validator, model_validator

from creative_compliance.compliance.geometry import Rect, bounding_rect
from creative_compliance.compliance.models import CamelModel

DEFAULT_FORMAT_ID = "instagram-feed"
DEFAULT_FONT_SIZE = 16.0


class FormatCategory(str, Enum):
    SOCIAL = "social"
    DISPLAY = "display"
    INSTORE = "instore"


class FormatConfig(CamelModel):
    """Per-format layout hints. The engine does not read these."""

    headline_font_size: Optional[float] = None
    sub_font_size: Optional[float] = None
    value_tile_scale: Optional[float] = None
    packshot_scale: Optional[float] = None
    layout: Optional[Literal["vertical", "horizontal"]] = None


class Format(CamelModel):
    """A creative output format (canvas size and placement family)."""

    format_id: str
    name: str = ""
    width: int = Field(gt=0)
    height: int = Field(gt=0)
    ratio: str
    category: FormatCategory = FormatCategory.SOCIAL
    config: Optional[FormatConfig] = None


def _preset(format_id, name, width, height, ratio, category, **config) -> Format:
    return Format(
        format_id=format_id,
        name=name,
        width=width,
        height=height,
        ratio=ratio,
        category=category,
        config=FormatConfig(**config),
    )


FORMAT_PRESETS: dict[str, Format] = {
    f.format_id: f
    for f in (
        _preset("instagram-feed", "Instagram Feed", 1080, 1080, "1:1", "social",
                value_tile_scale=1.5, headline_font_size=72, sub_font_size=48, packshot_scale=0.5, layout="vertical"),
        _preset("instagram-story", "Instagram Story", 1080, 1920, "9:16", "social",
                value_tile_scale=1.8, headline_font_size=96, sub_font_size=56, packshot_scale=0.6, layout="vertical"),
        _preset("facebook-feed", "Facebook Feed", 1200, 628, "1.91:1", "social",
                value_tile_scale=1.2, headline_font_size=60, sub_font_size=36, packshot_scale=0.45, layout="vertical"),
        _preset("facebook-story", "Facebook Story", 1080, 1920, "9:16", "social",
                value_tile_scale=1.8, headline_font_size=96, sub_font_size=56, packshot_scale=0.6, layout="vertical"),
        _preset("display-banner", "Display Banner", 728, 90, "8.09:1", "display",
                value_tile_scale=0.6, headline_font_size=24, sub_font_size=14, packshot_scale=0.8, layout="horizontal"),
        _preset("display-mpu", "Display MPU", 300, 250, "1.2:1", "display",
                value_tile_scale=0.7, headline_font_size=28, sub_font_size=18, packshot_scale=0.5, layout="vertical"),
        _preset("pos-portrait", "In-Store POS Portrait", 420, 594, "0.71:1", "instore",
                value_tile_scale=1.0, headline_font_size=48, sub_font_size=32, packshot_scale=0.6, layout="vertical"),
        _preset("pos-landscape", "In-Store POS Landscape", 594, 420, "1.41:1", "instore",
                value_tile_scale=1.0, headline_font_size=48, sub_font_size=32, packshot_scale=0.5, layout="horizontal"),
    )
}


def get_format(format_id: str) -> Format:
    """Look up a format preset by id. Raises KeyError for unknown ids."""
    return FORMAT_PRESETS[format_id]


class ElementKind(str, Enum):
    TEXT = "text"
    IMAGE = "image"
    SHAPE = "shape"


class ElementRole(str, Enum):
    """Semantic tag of an element on the creative."""

    HEADLINE = "headline"
    SUBHEAD = "subhead"
    BODY = "body"
    LOGO = "logo"
    PACKSHOT = "packshot"
    VALUE_TILE = "value_tile"
    DRINKAWARE = "drinkaware"
    TAG = "tag"
    BACKGROUND = "background"
    SAFE_ZONE = "safe_zone"
    DECORATION = "decoration"


class ValueTileType(str, Enum):
    NEW = "new"
    WHITE = "white"
    CLUBCARD = "clubcard"


class CreativeProfileId(str, Enum):
    STANDARD = "STANDARD"
    LOW_EVERYDAY_PRICE = "LOW_EVERYDAY_PRICE"
    CLUBCARD = "CLUBCARD"


# Role → flag it implies, and the order in which flags imply a role
_ROLE_FLAGS: dict[ElementRole, str] = {
    ElementRole.BACKGROUND: "is_background",
    ElementRole.SAFE_ZONE: "is_safe_zone",
    ElementRole.DRINKAWARE: "is_drinkaware",
    ElementRole.VALUE_TILE: "is_value_tile",
    ElementRole.TAG: "is_tag",
    ElementRole.PACKSHOT: "is_packshot",
    ElementRole.LOGO: "is_logo",
}


class Element(CamelModel):
    """A placed element on the creative, independent of the drawing library."""

    id: str = Field(min_length=1)
    kind: ElementKind
    role: Optional[ElementRole] = None

    # Geometry
    x: float = 0.0
    y: float = 0.0
    width: float = Field(default=0.0, ge=0)
    height: float = Field(default=0.0, ge=0)
    scale_x: float = Field(default=1.0, gt=0)
    scale_y: float = Field(default=1.0, gt=0)
    angle: float = 0.0

    # Text styling
    text: Optional[str] = None
    font_size: Optional[float] = Field(default=None, gt=0)
    font_weight: Optional[str] = None
    fill: Optional[str] = None

    # Raster
    data_url: Optional[str] = None

    # Flags
    is_background: bool = False
    is_safe_zone: bool = False
    is_logo: bool = False
    is_packshot: bool = False
    is_lead_packshot: bool = False
    is_value_tile: bool = False
    value_tile_type: Optional[ValueTileType] = None
    is_drinkaware: bool = False
    is_tag: bool = False
    has_moved: bool = False

    custom_name: Optional[str] = None

    @field_validator("font_weight", mode="before")
    @classmethod
    def _weight_as_text(cls, value: Any) -> Any:
        return str(value) if isinstance(value, (int, float)) else value

    @model_validator(mode="after")
    def _sync_role_and_flags(self) -> "Element":
        if self.role is not None:
            flag = _ROLE_FLAGS.get(ElementRole(self.role))
            if flag:
                setattr(self, flag, True)
        else:
            for role, flag in _ROLE_FLAGS.items():
                if getattr(self, flag):
                    self.role = role.value
                    break
        if self.is_lead_packshot:
            self.is_packshot = True
        return self

    # ── Derived geometry ──

    def bounding_rect(self) -> Rect:
        return bounding_rect(
            self.x, self.y, self.width * self.scale_x, self.height * self.scale_y, self.angle
        )

    @property
    def effective_font_size(self) -> float:
        return (self.font_size or DEFAULT_FONT_SIZE) * self.scale_y

    @property
    def effective_height(self) -> float:
        return self.height * self.scale_y

    # ── Classification ──

    @property
    def is_text(self) -> bool:
        return self.kind == ElementKind.TEXT.value

    @property
    def is_system(self) -> bool:
        """Value tiles, drinkaware lockups and tags are placed by the editor, not the user."""
        return self.is_value_tile or self.is_drinkaware or self.is_tag

    @property
    def display_name(self) -> str:
        if self.custom_name:
            return self.custom_name
        if self.text:
            return self.text[:20]
        return self.id


class CreativeContext(CamelModel):
    """Campaign-level facts the rules are gated on."""

    background_color: str = "#FFFFFF"
    is_alcohol_product: bool = False
    creative_profile: CreativeProfileId = CreativeProfileId.STANDARD
    people_confirmed: bool = False
    is_says: bool = False
    background_image_url: Optional[str] = None
    canvas_data_url: Optional[str] = None


class CreativeSnapshot(CamelModel):
    """Format + ordered elements + context, taken by the host for one evaluation."""

    format: Format = Field(default_factory=lambda: get_format(DEFAULT_FORMAT_ID))
    elements: list[Element] = Field(default_factory=list)
    context: CreativeContext = Field(default_factory=CreativeContext)

    @field_validator("format", mode="before")
    @classmethod
    def _resolve_preset(cls, value: Any) -> Any:
        if value is None:
            return get_format(DEFAULT_FORMAT_ID)
        if isinstance(value, str):
            try:
                return get_format(value)
            except KeyError:
                raise ValueError(f"Unknown format id '{value}'") from None
        return value

    @model_validator(mode="after")
    def _unique_element_ids(self) -> "CreativeSnapshot":
        seen: set[str] = set()
        for element in self.elements:
            if element.id in seen:
                raise ValueError(f"Duplicate element id '{element.id}'")
            seen.add(element.id)
        return self

    @property
    def format_id(self) -> str:
        return self.format.format_id

    def element(self, element_id: str) -> Optional[Element]:
        return next((e for e in self.elements if e.id == element_id), None)

    def text_elements(self) -> list[Element]:
        return [e for e in self.elements if e.is_text]

    def applicability(self) -> dict[str, Any]:
        """Key/value facts consulted by rule guards (``applies_when``)."""
        facts: dict[str, Any] = {}
        facts.update(self.context.model_dump(mode="json"))
        facts.update(self.context.model_dump(mode="json", by_alias=True))
        facts.update(
            {
                "formatId": self.format.format_id,
                "format_id": self.format.format_id,
                "ratio": self.format.ratio,
                "category": self.format.category,
            }
        )
        return facts
