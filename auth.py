"""
Bearer-token authentication.

Caller identity for every ledger operation is the `sub` claim of an HS256 JWT.
"""
import time
from typing import Optional

from fastapi import Depends, HTTPException, Request
from jose import JWTError, jwt

import config


def issue_token(subject: str, expires_in: Optional[int] = 3600) -> str:
     """Sign a token identifying `subject` (used by operators and tests)."""
     claims = {"sub": subject}
     if expires_in is not None:
          claims["exp"] = int(time.time()) + expires_in
     return jwt.encode(claims, config.JWT_SECRET, algorithm=config.JWT_ALGORITHM)


# Token Auth Dependency
def verify_token(request: Request) -> dict:
     auth = request.headers.get("Authorization")
     if not auth or not auth.startswith("Bearer "):
          raise HTTPException(status_code=401, detail="Missing token")
     token = auth.split(" ")[1]
     try:
          payload = jwt.decode(token, config.JWT_SECRET, algorithms=[config.JWT_ALGORITHM])
          return payload
     except JWTError:
          raise HTTPException(status_code=403, detail="Invalid token")


def get_caller(token: dict = Depends(verify_token)) -> str:
     """Identity of the authenticated caller."""
     subject = token.get("sub")
     if not subject:
          raise HTTPException(status_code=401, detail="Token has no subject")
     return subject
