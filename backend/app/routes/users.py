from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import List
from uuid import UUID
from app.db.session import get_db
from app.core.auth import get_current_user_id
from app.schemas.user import UserSearchResponse
from app.services.user_service import UserService

router = APIRouter()


@router.get("/search", response_model=List[UserSearchResponse])
def search_users(
    q: str = Query(..., min_length=1),
    limit: int = Query(10, ge=1, le=50),
    db: Session = Depends(get_db),
    current_user_id: UUID = Depends(get_current_user_id)
):
    """
    Search discoverable users by username, display name or email
    """
    return UserService(db).search_users(current_user_id, q, limit=limit)
