"""Template rendering, QR encoding and placement parsing."""

import io

import pytest
from PIL import Image
from pypdf import PdfReader

from letterflow.collaborators.qr import QrCodeEncoder
from letterflow.collaborators.renderer import RenderError, TemplatePdfRenderer
from letterflow.models.placement import (
    QrCodePlacement,
    dump_placements,
    image_placements,
    parse_placements,
    qr_placements,
)


def test_fill_substitutes_form_data():
    renderer = TemplatePdfRenderer()
    assert renderer.fill("Dear {{ name }},", {"name": "Ada"}) == "Dear Ada,"


def test_fill_escapes_markup_in_form_values():
    renderer = TemplatePdfRenderer()
    assert renderer.fill("{{ v }}", {"v": "<b>x</b>"}) == "&lt;b&gt;x&lt;/b&gt;"


def test_missing_field_renders_empty_unless_strict():
    assert TemplatePdfRenderer().fill("Hi {{ who }}!", {}) == "Hi !"
    with pytest.raises(RenderError):
        TemplatePdfRenderer(strict=True).fill("Hi {{ who }}!", {})


def test_broken_template_syntax():
    with pytest.raises(RenderError):
        TemplatePdfRenderer().fill("{% if %}", {})


def test_render_produces_pdf_with_content():
    pdf = TemplatePdfRenderer().render(
        "Offer letter", "Dear {{ name }},\n\nWelcome aboard.", {"name": "Ada"}
    )
    reader = PdfReader(io.BytesIO(pdf))
    text = reader.pages[0].extract_text()
    assert "Offer letter" in text
    assert "Dear Ada" in text
    assert "Welcome aboard." in text


def test_qr_encoder_returns_square_png():
    png = QrCodeEncoder().encode("https://letters.example.com/public/letters/ltr_1")
    image = Image.open(io.BytesIO(png))
    assert image.format == "PNG"
    assert image.width == image.height


def test_parse_placements_by_type():
    raw = [
        {"type": "signature", "page_number": 1, "x": 1, "y": 2, "width": 3, "height": 4, "url": "a.png"},
        {"type": "qrcode", "page_number": 2, "x": 1, "y": 2, "width": 50, "height": 50},
        {"type": "stamp", "page_number": 1, "x": 1, "y": 2, "width": 3, "height": 4, "url": "b.jpg"},
    ]
    placements = parse_placements(raw)
    assert [p.type for p in image_placements(placements)] == ["signature", "stamp"]
    assert isinstance(qr_placements(placements)[0], QrCodePlacement)
    assert dump_placements(placements)[1] == raw[1]


def test_parse_placements_rejects_unknown_type():
    with pytest.raises(ValueError):
        parse_placements([{"type": "watermark", "page_number": 1, "x": 0, "y": 0, "width": 1, "height": 1}])
