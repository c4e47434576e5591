"""Data models for PDS migration."""

from .request import MigrationRequest
from .session import AccountCreate, PDSSession, ServerDescription
from .blob import BlobData, BlobPage
from .identity import DidCredentials

__all__ = [
    'MigrationRequest',
    'AccountCreate',
    'PDSSession',
    'ServerDescription',
    'BlobData',
    'BlobPage',
    'DidCredentials',
]
