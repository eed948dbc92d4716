"""
Helpers for message content markup.

User messages may embed images as markdown data URLs
(``![alt](data:image/png;base64,...)``) followed by a block of OCR text
introduced by ``検出されたテキスト:``. These helpers split, strip and build
that markup.
"""

from __future__ import annotations

import re

from dataclasses import dataclass

from core.constants import IMAGE_PLACEHOLDER, OCR_TEXT_HEADING

#: Embedded base64 image: groups are alt, data URL, mime type, base64 payload
EMBEDDED_IMAGE_PATTERN = re.compile(r"!\[([^\]]*)\]\((data:(image/[\w.+-]+);base64,([A-Za-z0-9+/=\s]+))\)")

#: Any markdown image, embedded or linked
MARKDOWN_IMAGE_PATTERN = re.compile(r"!\[.*?\]\(.*?\)")

#: OCR block: heading line, then text up to the next blank line or end of content
OCR_BLOCK_PATTERN = re.compile(re.escape(OCR_TEXT_HEADING) + r"\n(.*?)(?=\n\n|$)", re.DOTALL)

DATA_URL_HEADER_PATTERN = re.compile(r"^data:image/[\w.+-]+;base64,")


@dataclass(frozen=True, slots=True)
class TextSegment:
    text: str


@dataclass(frozen=True, slots=True)
class ImageSegment:
    mime_type: str
    data: str
    alt: str = ""


ContentSegment = TextSegment | ImageSegment


def has_embedded_image(content: str) -> bool:
    """Whether content carries at least one base64 image."""
    return EMBEDDED_IMAGE_PATTERN.search(content) is not None


def split_content(content: str) -> list[ContentSegment]:
    """Split content into ordered text and image segments.

    Whitespace-only text between images is dropped.
    """
    segments: list[ContentSegment] = []
    position = 0
    for match in EMBEDDED_IMAGE_PATTERN.finditer(content):
        text = content[position : match.start()]
        if text.strip():
            segments.append(TextSegment(text.strip()))
        alt, _, mime_type, data = match.groups()
        segments.append(ImageSegment(mime_type=mime_type, data=re.sub(r"\s+", "", data), alt=alt))
        position = match.end()

    tail = content[position:]
    if tail.strip():
        segments.append(TextSegment(tail.strip()))
    return segments


def strip_image_markup(content: str) -> str:
    """Replace every markdown image with ``[画像]``."""
    return MARKDOWN_IMAGE_PATTERN.sub(IMAGE_PLACEHOLDER, content)


def strip_ocr_text(content: str) -> str:
    """Remove the first OCR text block, heading included."""
    return OCR_BLOCK_PATTERN.sub("", content, count=1)


def extract_ocr_text(content: str) -> str | None:
    match = OCR_BLOCK_PATTERN.search(content)
    return match.group(1) if match else None


def clean_for_title(content: str) -> str:
    """Text used for title generation: no images, no OCR block."""
    return strip_ocr_text(strip_image_markup(content)).strip()


def strip_data_url_header(image_data: str) -> str:
    """Return the raw base64 payload of a ``data:image/...;base64,`` URL."""
    return DATA_URL_HEADER_PATTERN.sub("", image_data)


def build_image_message(image_data: str, ocr_text: str | None = None, text: str = "", alt: str = "image") -> str:
    """Compose user message content carrying an image, its OCR text and a prompt."""
    parts = [f"![{alt}]({image_data})"]
    if ocr_text:
        parts.append(f"{OCR_TEXT_HEADING}\n{ocr_text}")
    if text:
        parts.append(text)
    return "\n\n".join(parts)
