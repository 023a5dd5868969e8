"""PDF manipulation: coordinates, aspect rules, skips and QR placement."""

import io
import threading

import pytest
from pypdf import PdfReader, PdfWriter

from conftest import PAGE_HEIGHT, PAGE_WIDTH, SIGNATURE_KEY, STAMP_KEY, make_jpeg, make_png
from letterflow.collaborators.images import ImageFetcher
from letterflow.errors.exceptions import DependencyFailureError
from letterflow.models.placement import QrCodePlacement, SignaturePlacement, StampPlacement
from letterflow.services import pdf_manipulator
from letterflow.services.pdf_manipulator import (
    PdfManipulator,
    ResolvedImage,
    decode_image,
    signature_size,
    stamp_size,
    to_pdf_y,
)


@pytest.fixture
def overlays(monkeypatch):
    """Capture the draws of every overlay without changing the output."""
    captured = []
    original = pdf_manipulator._make_overlay

    def spy(page_w, page_h, draws):
        captured.append(list(draws))
        return original(page_w, page_h, draws)

    monkeypatch.setattr(pdf_manipulator, "_make_overlay", spy)
    return captured


@pytest.fixture
def manipulator(store):
    return PdfManipulator(ImageFetcher(store))


def _sig(**kw):
    return SignaturePlacement(**{"page_number": 1, "x": 50, "y": 100, "width": 100, "height": 80,
                                 "url": SIGNATURE_KEY, **kw})


def test_to_pdf_y_flips_origin():
    assert to_pdf_y(792, 100, 50) == 642
    assert to_pdf_y(792, 0, 792) == 0


def test_signature_height_follows_image_ratio():
    assert signature_size(100, 200, 100) == (100, 50)
    assert signature_size(60, 100, 300) == (60, 180)


def test_stamp_fits_inside_box():
    assert stamp_size(100, 100, 200, 100) == (100, 50)
    assert stamp_size(100, 100, 100, 200) == (50, 100)
    assert stamp_size(80, 40, 40, 20) == (80, 40)


def test_percentages_override_absolute_values():
    placement = _sig(x_pct=10, y_pct=20, width_pct=50, height_pct=25)
    assert placement.resolve_box(600, 800) == (60, 160, 300, 200)


def test_partial_percentages_only_override_their_pair():
    placement = _sig(x_pct=10, y_pct=20)
    assert placement.resolve_box(600, 800) == (60, 160, 100, 80)


def test_decode_falls_back_to_jpeg():
    assert decode_image(make_png()).mode == "RGBA"
    assert decode_image(make_jpeg()).mode == "RGB"
    assert decode_image(b"definitely not an image") is None


def test_signature_drawn_at_converted_position(manipulator, overlays, pdf_bytes):
    out = manipulator.apply(pdf_bytes, [ResolvedImage(_sig(), make_png(200, 100))])

    assert len(PdfReader(io.BytesIO(out)).pages) == 2
    [draws] = overlays
    [draw] = draws
    assert (draw.x, draw.width, draw.height) == (50, 100, 50)
    assert draw.y == PAGE_HEIGHT - 100 - 50


def test_stamp_keeps_aspect_inside_box(manipulator, overlays, pdf_bytes):
    stamp = StampPlacement(page_number=2, x=300, y=300, width=100, height=100, url=STAMP_KEY)
    manipulator.apply(pdf_bytes, [ResolvedImage(stamp, make_jpeg(100, 50))])

    [[draw]] = overlays
    assert (draw.width, draw.height) == (100, 50)
    assert draw.y == PAGE_HEIGHT - 300 - 50


def test_placements_on_same_page_share_one_overlay(manipulator, overlays, pdf_bytes):
    images = [
        ResolvedImage(_sig(), make_png()),
        ResolvedImage(_sig(x=300), make_png()),
    ]
    manipulator.apply(pdf_bytes, images)
    assert len(overlays) == 1
    assert [d.x for d in overlays[0]] == [50, 300]


def test_bad_placements_are_skipped(manipulator, overlays, pdf_bytes):
    images = [
        ResolvedImage(_sig(page_number=3), make_png()),
        ResolvedImage(_sig(), b"garbage"),
        ResolvedImage(_sig(), None),
    ]
    out = manipulator.apply(pdf_bytes, images)
    assert overlays == []
    assert len(PdfReader(io.BytesIO(out)).pages) == 2


def test_qr_defaults_to_bottom_right_of_last_page(manipulator, overlays, pdf_bytes):
    manipulator.apply(pdf_bytes, [], qr_png=make_png(50, 50))

    [[draw]] = overlays
    assert (draw.width, draw.height) == (50, 50)
    assert draw.x == PAGE_WIDTH - 20 - 50
    assert draw.y == 20


def test_qr_drawn_at_every_target(manipulator, overlays, pdf_bytes):
    targets = [
        QrCodePlacement(page_number=1, x=10, y=10, width=40, height=40),
        QrCodePlacement(page_number=2, x=500, y=700, width=60, height=60),
        QrCodePlacement(page_number=9, x=0, y=0, width=60, height=60),
    ]
    manipulator.apply(pdf_bytes, [], qr_png=make_png(50, 50), qr_targets=targets)

    assert len(overlays) == 2
    first, second = overlays[0][0], overlays[1][0]
    assert (first.x, first.y, first.width) == (10, PAGE_HEIGHT - 10 - 40, 40)
    assert (second.x, second.y, second.width) == (500, PAGE_HEIGHT - 700 - 60, 60)


def test_merged_page_carries_image(manipulator, pdf_bytes):
    out = manipulator.apply(pdf_bytes, [ResolvedImage(_sig(page_number=2), make_png())])
    reader = PdfReader(io.BytesIO(out))
    assert len(reader.pages[0].images) == 0
    assert len(reader.pages[1].images) == 1


def test_unreadable_pdf_is_a_dependency_failure(manipulator):
    with pytest.raises(DependencyFailureError):
        manipulator.apply(b"this is not a pdf", [])


def test_qr_fallback_needs_a_page(manipulator):
    buf = io.BytesIO()
    PdfWriter().write(buf)
    empty = buf.getvalue()
    with pytest.raises(DependencyFailureError):
        manipulator.apply(empty, [], qr_png=make_png(50, 50))


async def test_bake_resolves_images_from_store(manipulator, overlays, pdf_bytes):
    placements = [
        _sig(),
        StampPlacement(page_number=1, x=300, y=300, width=100, height=100, url=STAMP_KEY),
        _sig(url="images/missing.png"),
        QrCodePlacement(page_number=1, x=0, y=0, width=50, height=50),
    ]
    resolved = await manipulator.resolve_images(placements)
    assert [r.data is not None for r in resolved] == [True, True, False]

    await manipulator.bake(pdf_bytes, placements)
    assert len(overlays[0]) == 2


async def test_bake_draws_off_the_event_loop(manipulator, monkeypatch, pdf_bytes):
    threads = []
    original = pdf_manipulator._make_overlay

    def spy(page_w, page_h, draws):
        threads.append(threading.get_ident())
        return original(page_w, page_h, draws)

    monkeypatch.setattr(pdf_manipulator, "_make_overlay", spy)
    out = await manipulator.bake(pdf_bytes, [_sig()])

    assert len(PdfReader(io.BytesIO(out)).pages) == 2
    assert threads and threading.get_ident() not in threads
