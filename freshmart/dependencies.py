# freshmart/dependencies.py
from fastapi import Depends, HTTPException
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.ext.asyncio import AsyncSession

from freshmart.auth_utils import verify_token
from freshmart.db.database import get_db
from freshmart.db.functions import get_user_by_id
from freshmart.db.models import RoleEnum

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="users/login")


async def get_current_user(token: str = Depends(oauth2_scheme), db: AsyncSession = Depends(get_db)):
    user_id = verify_token(token)
    user = await get_user_by_id(db, user_id)
    if user is None:
        raise HTTPException(status_code=401, detail="Invalid token")
    return user


async def get_store_owner(user=Depends(get_current_user)):
    if user.role != RoleEnum.store_owner or user.store_id is None:
        raise HTTPException(status_code=403, detail="Store owner access required")
    return user
