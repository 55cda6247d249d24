from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..deps import get_db
from ..schemas import HasNewOut, NoticeItem
from ..services import notice_items

router = APIRouter()


@router.get("/api/notices", response_model=list[NoticeItem])
def list_notices(db: Session = Depends(get_db)):
    return notice_items(db)


@router.get("/api/notices/has-new", response_model=HasNewOut)
def has_new_notices(db: Session = Depends(get_db)):
    return HasNewOut(has_new=any(item.is_new for item in notice_items(db)))
