"""DID credential models."""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, validator


class DidCredentials(BaseModel):
    """Credentials the destination PDS recommends for the DID document.

    Fields the server adds beyond these are kept and passed to
    ``signPlcOperation`` unchanged.
    """

    rotation_keys: List[str] = Field(default_factory=list, alias='rotationKeys')
    also_known_as: Optional[List[str]] = Field(default=None, alias='alsoKnownAs')
    verification_methods: Optional[Dict[str, Any]] = Field(
        default=None, alias='verificationMethods'
    )
    services: Optional[Dict[str, Any]] = Field(default=None)

    class Config:
        """Pydantic configuration."""

        populate_by_name = True
        extra = 'allow'

    @validator('rotation_keys', pre=True)
    def default_rotation_keys(cls, v):
        """A server may propose no rotation keys at all."""
        return v or []

    def to_body(self) -> Dict[str, Any]:
        """Build the credential part of a ``signPlcOperation`` body."""
        return self.dict(by_alias=True, exclude_none=True)
