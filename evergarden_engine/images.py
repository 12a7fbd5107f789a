"""Image payloads carried as base64 data URLs."""

from __future__ import annotations

import base64
import binascii
import re
from dataclasses import dataclass
from pathlib import Path

from .errors import FormatError

_DATA_URL_RE = re.compile(r"^data:(image/[\w.+-]+);base64,(.*)$", re.DOTALL)

_SUFFIX_MIME_TYPES = {
    ".png": "image/png",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".webp": "image/webp",
    ".gif": "image/gif",
}

_MIME_SUFFIXES = {
    "image/png": ".png",
    "image/jpeg": ".jpg",
    "image/webp": ".webp",
    "image/gif": ".gif",
}


@dataclass(frozen=True)
class ImagePayload:
    mime_type: str
    data: str

    @classmethod
    def from_data_url(cls, value: str) -> "ImagePayload":
        match = _DATA_URL_RE.match(str(value or "").strip())
        if not match:
            raise FormatError("Invalid image data URL format. Expected 'data:image/...;base64,...'")
        mime_type, data = match.groups()
        data = "".join(data.split())
        if not data:
            raise FormatError("Image data URL has an empty payload.")
        try:
            base64.b64decode(data, validate=True)
        except (binascii.Error, ValueError) as exc:
            raise FormatError(f"Image data URL payload is not valid base64: {exc}") from exc
        return cls(mime_type=mime_type, data=data)

    @classmethod
    def from_bytes(cls, data: bytes, mime_type: str = "image/png") -> "ImagePayload":
        return cls(mime_type=mime_type, data=base64.b64encode(data).decode("ascii"))

    @classmethod
    def from_path(cls, path: Path) -> "ImagePayload":
        path = Path(path)
        mime_type = mime_type_for_suffix(path.suffix)
        if mime_type is None:
            raise FormatError(f"Unsupported image type: {path.suffix or path.name}")
        return cls.from_bytes(path.read_bytes(), mime_type)

    def to_data_url(self) -> str:
        return f"data:{self.mime_type};base64,{self.data}"

    def to_bytes(self) -> bytes:
        return base64.b64decode(self.data)

    @property
    def suffix(self) -> str:
        return _MIME_SUFFIXES.get(self.mime_type, ".png")

    def __repr__(self) -> str:
        return f"ImagePayload(mime_type={self.mime_type!r}, data=<{len(self.data)} chars>)"


@dataclass(frozen=True)
class GenerationRequest:
    image: ImagePayload
    instruction: str


def mime_type_for_suffix(suffix: str) -> str | None:
    return _SUFFIX_MIME_TYPES.get(str(suffix or "").strip().lower())
