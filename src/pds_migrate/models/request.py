"""Migration input models."""

from typing import Optional

from pydantic import BaseModel, Field, validator

from ..utils.handle import normalize_handle


class MigrationRequest(BaseModel):
    """Everything the user provides to start a migration."""

    old_handle: str = Field(..., description='Handle on the source PDS')
    password: str = Field(..., description='Account password')
    email: Optional[str] = Field(default=None, description='Email for the new account')
    handle: Optional[str] = Field(default=None, description='Handle on the new PDS')
    invite_code: Optional[str] = Field(default=None, description='Invite code')
    auth_factor_token: Optional[str] = Field(
        default=None, description='Emailed two-factor sign-in code'
    )

    class Config:
        """Pydantic configuration."""

        frozen = True

    @validator('old_handle', pre=True)
    def validate_old_handle(cls, v):
        """Normalize the source handle and require a value."""
        if v is None:
            raise ValueError('Old handle is required')
        v = normalize_handle(str(v))
        if not v:
            raise ValueError('Old handle is required')
        return v

    @validator('password')
    def validate_password(cls, v):
        """Require a non-blank password."""
        if not v or not v.strip():
            raise ValueError('Password is required')
        return v

    @validator('handle')
    def validate_handle(cls, v):
        """Strip the leading @ from the new handle."""
        if v is None:
            return v
        return normalize_handle(v) or None

    @validator('email')
    def validate_email(cls, v):
        """Basic email validation."""
        if v is None:
            return v
        v = v.strip()
        if '@' not in v:
            raise ValueError('Invalid email format')
        return v

    @validator('invite_code', 'auth_factor_token')
    def blank_to_none(cls, v):
        """Treat blank optional codes as missing."""
        if v is not None and not v.strip():
            return None
        return v.strip() if v else v
