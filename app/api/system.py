from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.api.deps import get_db, require_role
from app.services.system import system_info

router = APIRouter(prefix="/system", tags=["system"])


@router.get("/info", dependencies=[Depends(require_role("admin"))])
def get_system_info(db: Session = Depends(get_db)):
    return system_info(db)
