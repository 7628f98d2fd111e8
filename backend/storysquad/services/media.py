from __future__ import annotations
from PIL import Image
import io


ALLOWED_MIME = {"image/jpeg", "image/png"}
EXT_FOR_MIME = {"image/jpeg": "jpg", "image/png": "png"}
FALLBACK_MIME = "application/octet-stream"

def sniff_mime(data: bytes) -> str | None:
    try:
        with Image.open(io.BytesIO(data)) as img:
            if img.format == "JPEG":
                return "image/jpeg"
            elif img.format == "PNG":
                return "image/png"
            return None
    except Exception:
        return None

def validate_page(data: bytes) -> str:
    """Return the mime of an uploaded page, or raise ValueError if it isn't a usable image."""
    mime = sniff_mime(data)
    if mime not in ALLOWED_MIME:
        raise ValueError("Unsupported image type")
    try:
        with Image.open(io.BytesIO(data)) as img:
            img.verify()  # basic integrity
    except Exception:
        raise ValueError("Invalid image file")
    return mime

def ext_for_mime(mime: str) -> str:
    return EXT_FOR_MIME.get(mime, "bin")

def media_type_for(data: bytes) -> str:
    return sniff_mime(data) or FALLBACK_MIME
