"""Blob listing and payload models."""

from typing import List, Optional

from pydantic import BaseModel, Field

DEFAULT_MIME_TYPE = 'application/octet-stream'


class BlobPage(BaseModel):
    """One page of ``com.atproto.sync.listBlobs``."""

    cids: List[str] = Field(default_factory=list, description='Blob CIDs')
    cursor: Optional[str] = Field(default=None, description='Next page cursor')


class BlobData(BaseModel):
    """Raw blob bytes and their content type."""

    cid: str = Field(..., description='Blob CID')
    data: bytes = Field(..., description='Blob bytes')
    mime_type: str = Field(default=DEFAULT_MIME_TYPE, description='Content type')
