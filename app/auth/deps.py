from typing import List, Optional

from fastapi import Depends, Header, HTTPException, status


async def get_current_user_id(x_user_id: Optional[str] = Header(None)) -> str:
    """Callers identify themselves explicitly; there is no server-side session."""
    if not x_user_id:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing X-User-Id header")
    return x_user_id


async def get_current_role(x_user_role: Optional[str] = Header(None)) -> str:
    return (x_user_role or "user").lower()


def role_required(allowed: List[str]):
    async def _dep(user_id: str = Depends(get_current_user_id), role: str = Depends(get_current_role)) -> str:
        if role not in allowed:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Insufficient permissions")
        return user_id

    return _dep
