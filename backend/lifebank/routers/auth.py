from __future__ import annotations

from fastapi import HTTPException, Security, status
from fastapi.security import OAuth2PasswordBearer
from pydantic import ValidationError

from ..models.principal import Principal, TokenPayload
from ..utils.security import decode_token

# Tokens are issued by the identity service; this layer only verifies them.
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/token", auto_error=False)


async def get_current_principal(token: str | None = Security(oauth2_scheme)) -> Principal:
    if not token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing authorization token")

    try:
        payload = decode_token(token)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=str(exc)) from exc
    try:
        token_payload = TokenPayload(**payload)
    except ValidationError as exc:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token payload") from exc
    if not token_payload.sub:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token payload")
    return Principal(id=token_payload.sub)
