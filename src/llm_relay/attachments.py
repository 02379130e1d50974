"""Attachment resolution interface and helpers shared by the encoders."""

from __future__ import annotations

import base64
import inspect
from dataclasses import dataclass
from pathlib import Path, PurePath
from typing import Awaitable, Optional, Protocol, Union

from llm_relay._exceptions import AttachmentResolutionError
from llm_relay.types import Attachment, AttachmentKind

__all__ = [
    "ResolvedAttachment",
    "AttachmentResolver",
    "FileAttachmentResolver",
    "resolve_attachment",
    "infer_image_media_type",
    "attachment_label",
    "text_attachment_block",
    "data_url",
    "PDF_MEDIA_TYPE",
]

_IMAGE_MEDIA_TYPES = {
    ".png": "image/png",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".gif": "image/gif",
    ".webp": "image/webp",
}
_DEFAULT_IMAGE_MEDIA_TYPE = "image/jpeg"

PDF_MEDIA_TYPE = "application/pdf"


@dataclass(frozen=True, slots=True)
class ResolvedAttachment:
    """Decoded attachment content. Images and PDFs carry ``data``; text kinds carry ``text``."""

    original_name: str
    data: Optional[bytes] = None
    text: Optional[str] = None

    @property
    def base64(self) -> str:
        if self.data is None:
            raise AttachmentResolutionError(
                f"Attachment {self.original_name!r} has no binary data"
            )
        return base64.b64encode(self.data).decode("ascii")


class AttachmentResolver(Protocol):
    """Resolves an attachment reference to its content, once per encode."""

    def resolve(
        self, attachment: Attachment
    ) -> Union[ResolvedAttachment, Awaitable[ResolvedAttachment]]: ...


class FileAttachmentResolver:
    """Treats ``Attachment.locator`` as a path on the local filesystem."""

    def __init__(self, root: str | Path | None = None, *, encoding: str = "utf-8") -> None:
        self.root = Path(root) if root is not None else None
        self.encoding = encoding

    def resolve(self, attachment: Attachment) -> ResolvedAttachment:
        path = Path(attachment.locator)
        if self.root is not None:
            path = self.root / path
        try:
            if attachment.kind in (AttachmentKind.IMAGE, AttachmentKind.PDF):
                return ResolvedAttachment(attachment.original_name, data=path.read_bytes())
            return ResolvedAttachment(
                attachment.original_name, text=path.read_text(encoding=self.encoding)
            )
        except OSError as exc:
            raise AttachmentResolutionError(
                f"Could not read attachment {attachment.original_name!r}: {exc}", exc
            ) from exc


async def resolve_attachment(
    resolver: AttachmentResolver | None, attachment: Attachment
) -> ResolvedAttachment:
    """Call *resolver*, awaiting the result when it is asynchronous."""
    if resolver is None:
        raise AttachmentResolutionError(
            f"No attachment resolver configured for {attachment.original_name!r}"
        )
    try:
        result = resolver.resolve(attachment)
        if inspect.isawaitable(result):
            result = await result
    except AttachmentResolutionError:
        raise
    except Exception as exc:
        raise AttachmentResolutionError(
            f"Could not resolve attachment {attachment.original_name!r}: {exc}", exc
        ) from exc
    return result


def infer_image_media_type(original_name: str) -> str:
    """Media type from the file extension only; unknown extensions are treated as JPEG."""
    suffix = PurePath(original_name).suffix.lower()
    return _IMAGE_MEDIA_TYPES.get(suffix, _DEFAULT_IMAGE_MEDIA_TYPE)


def attachment_label(attachment: Attachment) -> str:
    if attachment.kind == AttachmentKind.WEBPAGE:
        return f"[Webpage: {attachment.original_name}]"
    return f"[File: {attachment.original_name}]"


def text_attachment_block(attachment: Attachment, resolved: ResolvedAttachment) -> str:
    """Label plus decoded content, used for text and webpage attachments."""
    return f"{attachment_label(attachment)}\n{resolved.text or ''}"


def data_url(media_type: str, resolved: ResolvedAttachment) -> str:
    return f"data:{media_type};base64,{resolved.base64}"
