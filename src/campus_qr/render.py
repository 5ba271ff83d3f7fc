"""Render token payloads as QR codes."""

from __future__ import annotations

import io
from pathlib import Path

import qrcode


def _build(payload: str, box_size: int = 10, border: int = 4) -> qrcode.QRCode:
    qr = qrcode.QRCode(
        version=None,
        error_correction=qrcode.constants.ERROR_CORRECT_M,
        box_size=box_size,
        border=border,
    )
    qr.add_data(payload)
    qr.make(fit=True)
    return qr


def render_ascii(payload: str, invert: bool = False) -> str:
    """QR code as block characters for a terminal."""
    out = io.StringIO()
    _build(payload, border=2).print_ascii(out=out, invert=invert)
    return out.getvalue()


def render_png(payload: str, path: Path | str, box_size: int = 10) -> Path:
    """Write the QR code as a PNG image and return its path."""
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    img = _build(payload, box_size=box_size).make_image(fill_color="black", back_color="white")
    with target.open("wb") as fh:
        img.save(fh)
    return target
