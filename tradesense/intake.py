"""
Image intake: uploads and clipboard pastes become staged images.

Non-image items are dropped without failing the batch. Each accepted image
gets a PNG thumbnail (held in the PreviewStore) and a base64 data-URI used
for transmission; both are produced concurrently for every image in the batch.
"""

import asyncio
import base64
import binascii
import io
import logging
import uuid
from dataclasses import dataclass
from typing import Iterable, List, Optional, Tuple

from PIL import Image

from .errors import InvalidIntakeError
from .previews import PreviewStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class IntakeItem:
    media_type: str
    content: bytes
    filename: Optional[str] = None


@dataclass(frozen=True)
class StagedImage:
    id: str
    preview: str
    data_uri: str
    media_type: str
    size: int
    filename: Optional[str] = None


def is_image(item: IntakeItem) -> bool:
    return (item.media_type or "").lower().startswith("image/")


def encode_data_uri(content: bytes, media_type: str) -> str:
    return f"data:{media_type};base64,{base64.b64encode(content).decode('ascii')}"


def make_thumbnail(content: bytes, max_size: int) -> bytes:
    with Image.open(io.BytesIO(content)) as image:
        image.load()
        thumb = image.convert("RGBA") if image.mode not in ("RGB", "RGBA") else image.copy()
    thumb.thumbnail((max_size, max_size))
    buffer = io.BytesIO()
    thumb.save(buffer, format="PNG")
    return buffer.getvalue()


def item_from_paste(media_type: str, data: str) -> IntakeItem:
    """Decode a pasted item given as a data-URI or bare base64"""
    payload = data
    if data.startswith("data:") and "," in data:
        header, payload = data.split(",", 1)
        if not media_type:
            media_type = header[5:].split(";", 1)[0]
    try:
        content = base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError):
        logger.info("Dropping pasted item with invalid base64 payload")
        content = b""
    return IntakeItem(media_type=media_type or "", content=content)


async def stage_batch(
    items: Iterable[IntakeItem],
    previews: PreviewStore,
    preview_max_size: int = 480,
    max_image_bytes: Optional[int] = None,
) -> List[StagedImage]:
    """
    Convert a batch of items into staged images, in input order.

    Raises InvalidIntakeError (and allocates no preview) when nothing usable
    is left after filtering.
    """
    items = list(items)
    candidates = [
        item for item in items
        if is_image(item)
        and item.content
        and (max_image_bytes is None or len(item.content) <= max_image_bytes)
    ]
    if len(candidates) < len(items):
        logger.info(f"Intake dropped {len(items) - len(candidates)} of {len(items)} items")

    converted = await asyncio.gather(*(_convert(item, preview_max_size) for item in candidates))

    staged: List[StagedImage] = []
    for item, result in zip(candidates, converted):
        if result is None:
            continue
        thumbnail, data_uri = result
        staged.append(
            StagedImage(
                id=uuid.uuid4().hex[:12],
                preview=previews.create(thumbnail),
                data_uri=data_uri,
                media_type=item.media_type,
                size=len(item.content),
                filename=item.filename,
            )
        )

    if not staged:
        raise InvalidIntakeError()
    return staged


async def _convert(item: IntakeItem, preview_max_size: int) -> Optional[Tuple[bytes, str]]:
    try:
        thumbnail, data_uri = await asyncio.gather(
            asyncio.to_thread(make_thumbnail, item.content, preview_max_size),
            asyncio.to_thread(encode_data_uri, item.content, item.media_type),
        )
    except (OSError, Image.DecompressionBombError) as e:
        logger.info(f"Dropping undecodable image {item.filename or '<pasted>'}: {e}")
        return None
    return thumbnail, data_uri
