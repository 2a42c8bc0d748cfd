"""
Models of the character document stored as a page payload.

A document is a list of blocks tagged by ``type``: ``profile`` blocks carry a
portrait and label/value rows, ``content`` blocks carry an ordered list of
items tagged ``p``, ``h2``, ``h3`` or ``img``. Keys the models do not know are
kept, and dumping only emits keys that were supplied or assigned, so a
validated document round-trips unchanged apart from rewritten image paths.
Leaf values such as titles and text are stored as sent, whatever their
JSON type; only the ``type`` tags and list structure are checked.
"""

from __future__ import annotations

from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter


class _DocumentModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow")


class BasicInfo(_DocumentModel):
    label: Optional[Any] = None
    value: Optional[Any] = None


class ParagraphItem(_DocumentModel):
    type: Literal["p"]
    text: Optional[Any] = None


class HeadingItem(_DocumentModel):
    type: Literal["h2", "h3"]
    text: Optional[Any] = None


class ImageItem(_DocumentModel):
    type: Literal["img"]
    src: Optional[Any] = None
    text: Optional[Any] = None


ContentItem = Annotated[
    Union[ParagraphItem, HeadingItem, ImageItem], Field(discriminator="type")
]


class ProfileBlock(_DocumentModel):
    type: Literal["profile"]
    title: Optional[Any] = None
    portrait_img: Optional[Any] = Field(default=None, alias="portraitImg")
    basic_info: list[BasicInfo] = Field(default_factory=list, alias="basicInfo")


class ContentBlock(_DocumentModel):
    type: Literal["content"]
    title: Optional[Any] = None
    content: list[ContentItem] = Field(default_factory=list)


Block = Annotated[Union[ProfileBlock, ContentBlock], Field(discriminator="type")]

_blocks_adapter = TypeAdapter(list[Block])


def normalize_blocks(data: Any) -> list[Any]:
    """Wrap a single block object into a one-element list."""
    return data if isinstance(data, list) else [data]


def parse_document(data: Any) -> list[Union[ProfileBlock, ContentBlock]]:
    """
    Validate raw JSON data as a list of blocks.

    Raises:
        pydantic.ValidationError: if a block or item has an unknown ``type``
            or a block list, item list or row list of the wrong shape.
    """
    return _blocks_adapter.validate_python(normalize_blocks(data))


def dump_document(blocks: list[Union[ProfileBlock, ContentBlock]]) -> list[dict]:
    return _blocks_adapter.dump_python(blocks, by_alias=True, exclude_unset=True)
