from __future__ import annotations

from pydantic import BaseModel


class Principal(BaseModel):
    id: str


class TokenPayload(BaseModel):
    sub: str
    exp: int


class InitializeRequest(BaseModel):
    admin: str


class AuthorizationStatus(BaseModel):
    principal: str
    authorized: bool
