from fastapi import Header, HTTPException, status


async def get_owner_id(x_owner_id: str = Header(default="")) -> str:
    """
    Owner of the request. Authentication happens upstream (gateway); it
    forwards the authenticated account id in ``X-Owner-Id``.
    """
    owner_id = x_owner_id.strip()
    if not owner_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
        )
    return owner_id
