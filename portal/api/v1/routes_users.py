# File: portal/api/v1/routes_users.py

from typing import Optional

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from portal.api.deps import get_current_user, get_db
from portal.models.enums import Role
from portal.models.user import User
from portal.schemas.user import ProfileUpdate, StaffCreate, UserListResponse, UserRead
from portal.services import user_service

router = APIRouter()


@router.get("/me", response_model=UserRead, summary="Current user")
def read_me(current_user: User = Depends(get_current_user)):
    return current_user


@router.put("/me", response_model=UserRead, summary="Update own profile")
def update_me(
    payload: ProfileUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return user_service.update_profile(db, current_user, payload.model_dump(exclude_unset=True))


@router.get("", response_model=UserListResponse, summary="List users (admin)")
def list_users(
    role: Optional[Role] = None,
    search: Optional[str] = None,
    page: int = 1,
    limit: int = 20,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return user_service.list_users(
        db, current_user, role=role, search=search, page=page, limit=limit
    )


@router.put("/{user_id}/block", response_model=UserRead, summary="Toggle block (admin)")
def toggle_block(
    user_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return user_service.toggle_block(db, current_user, user_id)


@router.post(
    "/staff",
    response_model=UserRead,
    status_code=status.HTTP_201_CREATED,
    summary="Create staff account (admin)",
)
def create_staff(
    payload: StaffCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return user_service.create_staff(db, current_user, **payload.model_dump())


@router.delete(
    "/staff/{staff_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete staff account (admin)",
)
def delete_staff(
    staff_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    user_service.delete_staff(db, current_user, staff_id)


@router.put("/{user_id}", response_model=UserRead, summary="Update staff profile (admin)")
def update_staff_profile(
    user_id: int,
    payload: ProfileUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return user_service.update_staff_profile(
        db, current_user, user_id, payload.model_dump(exclude_unset=True)
    )
