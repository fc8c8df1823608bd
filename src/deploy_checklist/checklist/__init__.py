"""
Staging deploy checklist document format.

This package converts tracking issue bodies to structured documents and back.
"""

from .parser import parse_checklist, parse_ticket
from .serializer import build_checklist_body, render_document

__all__ = [
    "parse_checklist",
    "parse_ticket",
    "build_checklist_body",
    "render_document",
]
