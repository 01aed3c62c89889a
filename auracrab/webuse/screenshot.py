"""Encoding of visible-tab captures as data URIs (optionally downscaled)."""

from __future__ import annotations

import base64
from io import BytesIO

from PIL import Image

MIME_BY_FORMAT = {"jpeg": "image/jpeg", "png": "image/png"}


def to_data_uri(data_b64: str, fmt: str) -> str:
    return f"data:{MIME_BY_FORMAT.get(fmt, 'image/' + fmt)};base64,{data_b64}"


def downscale_b64(data_b64: str, fmt: str, max_dim: int) -> str:
    """Shrink a base64 image so its longest side is at most `max_dim` pixels.

    Images already within bounds are returned unchanged (no re-encode).
    """
    if max_dim <= 0:
        return data_b64
    raw = base64.b64decode(data_b64)
    with Image.open(BytesIO(raw)) as img:
        if max(img.size) <= max_dim:
            return data_b64
        img.thumbnail((max_dim, max_dim), Image.Resampling.LANCZOS)
        out = BytesIO()
        if fmt == "jpeg":
            img.convert("RGB").save(out, format="JPEG", quality=85)
        else:
            img.save(out, format="PNG", optimize=True)
    return base64.b64encode(out.getvalue()).decode("ascii")


__all__ = ["MIME_BY_FORMAT", "downscale_b64", "to_data_uri"]
