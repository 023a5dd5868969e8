"""Placement descriptors for images baked into letter PDFs.

Placements are tagged on ``type``. Coordinates use a top-left origin
(screen/HTML convention) and PDF points; the manipulator converts them to
the PDF bottom-left origin when drawing.
"""

from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

from letterflow.models.enums import PlacementType


class _PlacementBase(BaseModel):
    model_config = ConfigDict(extra="forbid")

    page_number: int = Field(..., ge=1)
    x: float
    y: float
    width: float = Field(..., gt=0)
    height: float = Field(..., gt=0)
    x_pct: float | None = None
    y_pct: float | None = None
    width_pct: float | None = None
    height_pct: float | None = None

    def resolve_box(self, page_width: float, page_height: float) -> tuple[float, float, float, float]:
        """Return (x, y, width, height) in points, top-left origin.

        Percentages (0-100 of the page) win over absolute values, per pair:
        x_pct/y_pct for the position, width_pct/height_pct for the size.
        """
        x, y, width, height = self.x, self.y, self.width, self.height
        if self.x_pct is not None and self.y_pct is not None:
            x = page_width * self.x_pct / 100.0
            y = page_height * self.y_pct / 100.0
        if self.width_pct is not None and self.height_pct is not None:
            width = page_width * self.width_pct / 100.0
            height = page_height * self.height_pct / 100.0
        return x, y, width, height


class SignaturePlacement(_PlacementBase):
    type: Literal["signature"] = "signature"
    url: str = Field(..., min_length=1)


class StampPlacement(_PlacementBase):
    type: Literal["stamp"] = "stamp"
    url: str = Field(..., min_length=1)


class QrCodePlacement(_PlacementBase):
    type: Literal["qrcode"] = "qrcode"
    url: str | None = None


Placement = Annotated[
    Union[SignaturePlacement, StampPlacement, QrCodePlacement],
    Field(discriminator="type"),
]

_placement_list = TypeAdapter(list[Placement])


def parse_placements(raw: list[dict] | None) -> list[Placement]:
    """Validate stored placement dicts back into typed records."""
    return _placement_list.validate_python(raw or [])


def dump_placements(placements: list[Placement]) -> list[dict]:
    return [p.model_dump(mode="json", exclude_none=True) for p in placements]


def image_placements(placements: list[Placement]) -> list[Placement]:
    """Signature and stamp placements, in order."""
    return [p for p in placements if p.type != PlacementType.QRCODE]


def qr_placements(placements: list[Placement]) -> list[QrCodePlacement]:
    return [p for p in placements if p.type == PlacementType.QRCODE]
