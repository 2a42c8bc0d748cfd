"""
Page documents and the character-page save workflow.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Iterable, List, Optional, Sequence, Union

from pydantic import ValidationError

from charwiki.config import Settings
from charwiki.db import DbClient, PageRecord
from charwiki.documents import (
    ContentBlock,
    ImageItem,
    ProfileBlock,
    dump_document,
    parse_document,
)
from charwiki.images import compress_images
from charwiki.results import Messages, Outcome, ServiceResult
from charwiki.storage import StoredUpload

logger = logging.getLogger(__name__)

STATIC_URL_PREFIX = "/static/"


@dataclass
class UploadSplit:
    images: List[StoredUpload]
    others: List[StoredUpload]


def split_uploads(uploads: Iterable[StoredUpload], image_mimes: Sequence[str]) -> UploadSplit:
    images: List[StoredUpload] = []
    others: List[StoredUpload] = []
    for upload in uploads:
        if upload.content_type in image_mimes:
            images.append(upload)
        else:
            others.append(upload)
    return UploadSplit(images=images, others=others)


def _find_upload(images: Sequence[StoredUpload], prefix: str) -> Optional[StoredUpload]:
    for upload in images:
        if upload.original_name.startswith(prefix):
            return upload
    return None


def apply_upload_paths(
    blocks: List[Union[ProfileBlock, ContentBlock]], images: Sequence[StoredUpload]
) -> None:
    """
    Points image fields at uploaded files, by filename convention.

    Clients name the portrait of block ``i`` ``profile_{i}_<anything>`` and the
    image item ``j`` of content block ``i`` ``content_{i}_{j}_<anything>``. The
    first matching image upload wins; fields without a match are left alone.
    """
    for block_index, block in enumerate(blocks):
        if isinstance(block, ProfileBlock):
            upload = _find_upload(images, f"profile_{block_index}_")
            if upload:
                block.portrait_img = STATIC_URL_PREFIX + upload.filename
        elif isinstance(block, ContentBlock):
            for item_index, item in enumerate(block.content):
                if not isinstance(item, ImageItem):
                    continue
                upload = _find_upload(images, f"content_{block_index}_{item_index}_")
                if upload:
                    item.src = STATIC_URL_PREFIX + upload.filename


class PageService:
    def __init__(self, db: DbClient, settings: Settings):
        self.db = db
        self.settings = settings

    def get_page(self, route: str) -> dict:
        """Returns the stored page for ``route``, or ``{"data": []}``."""
        page = self.db.get_page(route)
        if page is None:
            return {"data": []}
        return page.as_dict()

    def save_page(self, route: str, data: Any) -> PageRecord:
        page = self.db.save_page(route, data)
        logger.info("Saved page %s", route)
        return page

    def save_character_page(
        self,
        route: str,
        uploads: Sequence[StoredUpload],
        data: Any,
        username: Optional[str],
    ) -> ServiceResult:
        """
        Records an edit by ``username``, compresses uploaded images and
        saves ``data`` (if any) with image paths pointing at the uploads.

        ``data`` of None means the call only uploads files.
        """
        if not username:
            return ServiceResult.failure(Outcome.UNAUTHENTICATED, Messages.NOT_LOGGED_IN)

        user = self.db.get_user(username)
        if not user:
            return ServiceResult.failure(Outcome.NOT_FOUND, Messages.USER_NOT_FOUND)

        if user.edit_permission != self.settings.edit_permission_enabled:
            logger.warning("Rejected edit of %s by %s: no edit permission", route, username)
            return ServiceResult.failure(Outcome.FORBIDDEN, Messages.NO_EDIT_PERMISSION)

        user.last_edit_time = datetime.now()
        user.edit_count += 1
        self.db.save_user(user)

        split = split_uploads(uploads, self.settings.allowed_image_mimes)
        if split.images:
            compress_images(
                [(upload.path, upload.filename) for upload in split.images],
                self.settings,
            )

        if data is None:
            return ServiceResult.success(Messages.FILES_UPLOADED)

        try:
            blocks = parse_document(data)
        except ValidationError as e:
            logger.warning("Rejected document for %s: %s", route, e)
            return ServiceResult.failure(Outcome.VALIDATION_ERROR, Messages.INVALID_DOCUMENT)

        apply_upload_paths(blocks, split.images)
        self.save_page(route, dump_document(blocks))
        return ServiceResult.success(Messages.DOCUMENT_SAVED)
