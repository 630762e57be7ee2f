from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from blogapi import responses
from blogapi.database import get_db
from blogapi.dependencies import get_current_user
from blogapi.schemas import PasswordChange, ProfileUpdate, UserLogin, UserRegister
from blogapi.security import Caller
from blogapi.services import auth_service, user_service

router = APIRouter(prefix="/api/v1/auth", tags=["auth"])


@router.post("/register", status_code=201)
async def register(data: UserRegister, db: AsyncSession = Depends(get_db)):
    return responses.success(await auth_service.register(db, data), message="Registration successful")


@router.post("/login")
async def login(data: UserLogin, db: AsyncSession = Depends(get_db)):
    return responses.success(await auth_service.login(db, data), message="Login successful")


@router.get("/me")
async def me(caller: Caller = Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    return responses.success(await user_service.get_me(db, caller.user_id))


@router.put("/profile")
async def update_profile(
    data: ProfileUpdate,
    caller: Caller = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    user = await user_service.update_profile(db, caller.user_id, data)
    return responses.success(user, message="Profile updated")


@router.put("/password")
async def change_password(
    data: PasswordChange,
    caller: Caller = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await user_service.change_password(db, caller.user_id, data)
    return responses.success(message="Password changed")
