"""PDF manipulation: bakes signature, stamp and QR images into letter PDFs.

Each target page gets one reportlab overlay canvas holding every image
placed on it; the overlay is merged onto the page with pypdf and the
document is serialised once at the end.
"""

from __future__ import annotations

import asyncio
import io
import logging
from collections import defaultdict
from dataclasses import dataclass

from PIL import Image, UnidentifiedImageError
from pypdf import PdfReader, PdfWriter
from pypdf.errors import PyPdfError
from reportlab.lib.utils import ImageReader
from reportlab.pdfgen import canvas

from letterflow.collaborators.images import ImageFetcher
from letterflow.errors.exceptions import DependencyFailureError
from letterflow.models.enums import PlacementType
from letterflow.models.placement import Placement, QrCodePlacement

logger = logging.getLogger(__name__)


@dataclass
class ResolvedImage:
    """A placement paired with its fetched image bytes (None when the fetch failed)."""

    placement: Placement
    data: bytes | None


@dataclass
class _Draw:
    image: Image.Image
    x: float
    y: float
    width: float
    height: float


def to_pdf_y(page_height: float, y: float, height: float) -> float:
    """Convert a top-left-origin y to the PDF bottom-left origin."""
    return page_height - y - height


def signature_size(box_width: float, image_width: int, image_height: int) -> tuple[float, float]:
    """Signatures keep the given width; height follows the image's intrinsic ratio."""
    return box_width, box_width * image_height / image_width


def stamp_size(box_width: float, box_height: float, image_width: int, image_height: int) -> tuple[float, float]:
    """Stamps are scaled to fit inside the box, preserving aspect ratio."""
    scale = min(box_width / image_width, box_height / image_height)
    return image_width * scale, image_height * scale


def decode_image(data: bytes) -> Image.Image | None:
    """Decode PNG, falling back to JPEG; None if neither works."""
    for fmt, mode in (("PNG", "RGBA"), ("JPEG", "RGB")):
        try:
            img = Image.open(io.BytesIO(data), formats=[fmt])
            img.load()
        except (UnidentifiedImageError, OSError):
            continue
        return img.convert(mode)
    return None


class PdfManipulator:
    def __init__(self, image_fetcher: ImageFetcher, qr_default_size: float = 50.0, qr_default_margin: float = 20.0):
        self.image_fetcher = image_fetcher
        self.qr_default_size = qr_default_size
        self.qr_default_margin = qr_default_margin

    async def resolve_images(self, placements: list[Placement]) -> list[ResolvedImage]:
        """Fetch the image behind every signature and stamp placement."""
        resolved = []
        for placement in placements:
            if placement.type == PlacementType.QRCODE:
                continue
            data = await self.image_fetcher.fetch(placement.url)
            if data is None:
                logger.warning(
                    "Skipping %s placement on page %d: image %s unavailable",
                    placement.type, placement.page_number, placement.url,
                )
            resolved.append(ResolvedImage(placement=placement, data=data))
        return resolved

    async def bake(
        self,
        pdf_bytes: bytes,
        placements: list[Placement],
        qr_png: bytes | None = None,
        qr_targets: list[QrCodePlacement] | None = None,
    ) -> bytes:
        """Fetch the placement images, then draw them off the event loop."""
        images = await self.resolve_images(placements)
        return await asyncio.to_thread(self.apply, pdf_bytes, images, qr_png, qr_targets)

    def apply(
        self,
        pdf_bytes: bytes,
        images: list[ResolvedImage],
        qr_png: bytes | None = None,
        qr_targets: list[QrCodePlacement] | None = None,
    ) -> bytes:
        """Draw resolved images (and optionally a QR code) and return the new PDF bytes.

        Out-of-range pages and undecodable images are skipped with a warning.
        With ``qr_png`` and no ``qr_targets`` the QR goes to the bottom-right
        corner of the last page.
        """
        try:
            reader = PdfReader(io.BytesIO(pdf_bytes))
            pages = list(reader.pages)
        except Exception as exc:
            raise DependencyFailureError("Unable to read PDF document", {"error": str(exc)}) from exc

        draws: dict[int, list[_Draw]] = defaultdict(list)

        for item in images:
            if item.data is None:
                continue
            placement = item.placement
            index = self._page_index(placement.page_number, len(pages))
            if index is None:
                continue
            img = decode_image(item.data)
            if img is None:
                logger.warning(
                    "Skipping %s placement on page %d: image %s is neither PNG nor JPEG",
                    placement.type, placement.page_number, placement.url,
                )
                continue
            page_w, page_h = _page_size(pages[index])
            x, y, box_w, box_h = placement.resolve_box(page_w, page_h)
            if placement.type == PlacementType.SIGNATURE:
                w, h = signature_size(box_w, img.width, img.height)
            else:
                w, h = stamp_size(box_w, box_h, img.width, img.height)
            draws[index].append(_Draw(img, x, to_pdf_y(page_h, y, h), w, h))

        if qr_png is not None:
            self._place_qr(pages, qr_png, qr_targets or [], draws)

        writer = PdfWriter()
        for index, page in enumerate(pages):
            if draws.get(index):
                page_w, page_h = _page_size(page)
                overlay = PdfReader(io.BytesIO(_make_overlay(page_w, page_h, draws[index])))
                page.merge_page(overlay.pages[0])
            writer.add_page(page)

        out = io.BytesIO()
        try:
            writer.write(out)
        except (PyPdfError, ValueError, OSError) as exc:
            raise DependencyFailureError("Unable to write PDF document", {"error": str(exc)}) from exc
        return out.getvalue()

    def _place_qr(
        self,
        pages: list,
        qr_png: bytes,
        targets: list[QrCodePlacement],
        draws: dict[int, list[_Draw]],
    ) -> None:
        img = decode_image(qr_png)
        if img is None:
            raise DependencyFailureError("QR code image could not be decoded")

        if targets:
            for target in targets:
                index = self._page_index(target.page_number, len(pages))
                if index is None:
                    continue
                page_w, page_h = _page_size(pages[index])
                x, y, w, h = target.resolve_box(page_w, page_h)
                draws[index].append(_Draw(img, x, to_pdf_y(page_h, y, h), w, h))
            return

        if not pages:
            raise DependencyFailureError("PDF document has no pages for the QR code")
        index = len(pages) - 1
        page_w, page_h = _page_size(pages[index])
        size = self.qr_default_size
        margin = self.qr_default_margin
        x = page_w - margin - size
        y = page_h - margin - size
        draws[index].append(_Draw(img, x, to_pdf_y(page_h, y, size), size, size))

    @staticmethod
    def _page_index(page_number: int, page_count: int) -> int | None:
        if 1 <= page_number <= page_count:
            return page_number - 1
        logger.warning("Placement page %d out of range (document has %d pages)", page_number, page_count)
        return None


def _page_size(page) -> tuple[float, float]:
    box = page.mediabox
    return float(box.width), float(box.height)


def _make_overlay(page_w: float, page_h: float, draws: list[_Draw]) -> bytes:
    buf = io.BytesIO()
    c = canvas.Canvas(buf, pagesize=(page_w, page_h))
    for d in draws:
        c.drawImage(ImageReader(d.image), d.x, d.y, width=d.width, height=d.height, mask="auto")
    c.save()
    return buf.getvalue()
