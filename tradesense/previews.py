"""
In-memory preview thumbnails addressed by opaque handles.

A handle is created once per staged image and must be revoked exactly once,
when that image leaves the session.
"""

import logging
import uuid
from dataclasses import dataclass
from typing import Dict, Optional

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Preview:
    content: bytes
    media_type: str = "image/png"


class PreviewStore:
    def __init__(self):
        self._previews: Dict[str, Preview] = {}

    def create(self, content: bytes, media_type: str = "image/png") -> str:
        handle = f"preview-{uuid.uuid4().hex}"
        self._previews[handle] = Preview(content, media_type)
        return handle

    def get(self, handle: str) -> Optional[Preview]:
        return self._previews.get(handle)

    def revoke(self, handle: str) -> None:
        if self._previews.pop(handle, None) is None:
            # A second revoke means some path released a handle it did not own
            raise KeyError(f"preview handle {handle} is not live")
        logger.debug(f"Revoked {handle}")

    def __contains__(self, handle: str) -> bool:
        return handle in self._previews

    def __len__(self) -> int:
        return len(self._previews)
