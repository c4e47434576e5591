"""Session and server description models."""

from typing import List, Optional

from pydantic import BaseModel, Field


class PDSSession(BaseModel):
    """An authenticated session on one PDS."""

    did: str = Field(..., description='Account DID')
    handle: str = Field(..., description='Account handle')
    access_jwt: str = Field(..., alias='accessJwt', description='Access token')
    refresh_jwt: str = Field(..., alias='refreshJwt', description='Refresh token')
    email: Optional[str] = Field(default=None, description='Account email')
    active: Optional[bool] = Field(default=None, description='Account is active')

    class Config:
        """Pydantic configuration."""

        populate_by_name = True

    def __repr__(self) -> str:
        return f'PDSSession(did={self.did!r}, handle={self.handle!r})'

    __str__ = __repr__


class ServerDescription(BaseModel):
    """Result of ``com.atproto.server.describeServer``."""

    did: str = Field(..., description='Service DID of the server')
    available_user_domains: List[str] = Field(
        default_factory=list, alias='availableUserDomains'
    )
    invite_code_required: bool = Field(default=False, alias='inviteCodeRequired')

    class Config:
        """Pydantic configuration."""

        populate_by_name = True


class AccountCreate(BaseModel):
    """Body of ``com.atproto.server.createAccount`` for a migrating DID."""

    did: str = Field(..., description='Existing DID being migrated')
    handle: str = Field(..., description='Requested handle')
    email: str = Field(..., description='Account email')
    password: str = Field(..., description='Account password')
    invite_code: Optional[str] = Field(default=None, alias='inviteCode')

    class Config:
        """Pydantic configuration."""

        populate_by_name = True

    def to_body(self) -> dict:
        """Build the XRPC request body."""
        return self.dict(by_alias=True, exclude_none=True)
