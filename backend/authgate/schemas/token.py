"""Token claim and session schemas"""

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class Identity(BaseModel):
    """Authenticated identity derived from access token claims"""
    model_config = ConfigDict(frozen=True)

    id: int
    email: str
    role: str
    name: str


class AccessClaims(BaseModel):
    """Claims carried by an access token. Unknown fields are rejected."""
    model_config = ConfigDict(extra="forbid", frozen=True)

    sub: str = Field(..., pattern=r"^\d+$")
    email: str
    role: str
    name: str
    type: Literal["access"]
    iat: int
    exp: int
    iss: str
    aud: str

    def to_identity(self) -> Identity:
        return Identity(id=int(self.sub), email=self.email, role=self.role, name=self.name)


class RefreshClaims(BaseModel):
    """Claims carried by a refresh token. Unknown fields are rejected."""
    model_config = ConfigDict(extra="forbid", frozen=True)

    sub: str = Field(..., pattern=r"^\d+$")
    type: Literal["refresh"]
    jti: str = Field(..., min_length=16, max_length=128)
    iat: int
    exp: int
    iss: str
    aud: str


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class LoginRequest(_CamelModel):
    """Login request body"""
    email: str = Field(..., min_length=3, max_length=255)
    password: str = Field(..., min_length=1, max_length=255)


class RefreshTokenRequest(_CamelModel):
    """Refresh request body"""
    refresh_token: str = Field(..., min_length=1, max_length=4096)


class LogoutRequest(_CamelModel):
    """Logout request body"""
    refresh_token: str = Field(default="", max_length=4096)


class TokenPair(_CamelModel):
    """Access/refresh token pair returned by login and refresh"""
    access_token: str
    refresh_token: str
    token_type: str = "Bearer"
    expires_in: int


class MessageResponse(BaseModel):
    """Plain message response"""
    message: str
