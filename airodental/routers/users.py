from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..database import get_db
from .. import models, schemas

router = APIRouter(prefix="/api/users", tags=["users"])


@router.get("", response_model=list[schemas.UserOut])
def list_users(
    role: Optional[models.Role] = Query(None, description="Only users with this role"),
    db: Session = Depends(get_db),
):
    q = db.query(models.User)
    if role is not None:
        q = q.filter(models.User.role == role)
    return q.order_by(models.User.id.asc()).all()


@router.post("", response_model=schemas.UserOut, status_code=201)
def create_user(req: schemas.UserIn, db: Session = Depends(get_db)):
    user = models.User(name=req.name, email=req.email.strip().lower(), role=req.role)
    db.add(user)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=409, detail="A user with this email already exists")
    db.refresh(user)
    return user
