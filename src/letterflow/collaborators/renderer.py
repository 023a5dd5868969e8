"""Template renderer: fills template content with form data and lays it out as a PDF."""

from __future__ import annotations

import io
import re
from typing import Any

from jinja2 import Environment, StrictUndefined, TemplateError
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import getSampleStyleSheet
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer

from letterflow.collaborators.base import DocumentRenderer

_PARAGRAPH_BREAK = re.compile(r"\n\s*\n")


class RenderError(Exception):
    """Template content could not be filled or laid out."""


class TemplatePdfRenderer(DocumentRenderer):
    """Renders ``{{ field }}`` placeholders with jinja2, then builds an A4 PDF with reportlab.

    Form values are escaped so they cannot inject paragraph markup; the
    template content itself may use reportlab's inline tags (``<b>``, ``<i>``).
    """

    def __init__(self, strict: bool = False):
        kwargs: dict[str, Any] = {"autoescape": True}
        if strict:
            kwargs["undefined"] = StrictUndefined
        self._env = Environment(**kwargs)

    def fill(self, content: str, form_data: dict[str, Any]) -> str:
        try:
            return self._env.from_string(content).render(**form_data)
        except TemplateError as exc:
            raise RenderError(f"Template rendering failed: {exc}") from exc

    def render(self, title: str, content: str, form_data: dict[str, Any]) -> bytes:
        text = self.fill(content, form_data)
        styles = getSampleStyleSheet()
        elements = [Paragraph(title, styles["Title"]), Spacer(1, 12)]
        for block in _PARAGRAPH_BREAK.split(text.strip()):
            if not block.strip():
                continue
            elements.append(Paragraph(block.replace("\n", "<br/>"), styles["Normal"]))
            elements.append(Spacer(1, 12))

        buffer = io.BytesIO()
        doc = SimpleDocTemplate(buffer, pagesize=A4, title=title)
        try:
            doc.build(elements)
        except ValueError as exc:
            raise RenderError(f"PDF layout failed: {exc}") from exc
        return buffer.getvalue()
