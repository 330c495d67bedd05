"""
MTR Devis - Routes Réclamations
"""

from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, Query

from models.reclamation import ReclamationCreate
from routes.auth import get_current_user, require_admin
from routes.deps import get_db, get_reclamation_service, http_error
from services.errors import DevisError

router = APIRouter(prefix="/reclamations", tags=["Reclamations"])


@router.post("", status_code=201)
async def create_reclamation(
    data: ReclamationCreate,
    user: dict = Depends(get_current_user),
    service=Depends(get_reclamation_service),
):
    try:
        rec = await service.create(user["id"], data)
    except DevisError as e:
        raise http_error(e)
    return {"success": True, "data": rec}


@router.get("/me")
async def my_reclamations(
    user: dict = Depends(get_current_user),
    service=Depends(get_reclamation_service),
):
    items = await service.list_for_user(user["id"])
    return {"success": True, "data": items}


@router.get("/admin")
async def admin_list_reclamations(
    page: int = Query(1),
    page_size: int = Query(20),
    q: Optional[str] = Query(None),
    user: dict = Depends(require_admin),
    service=Depends(get_reclamation_service),
):
    result = await service.list_all(page, page_size, q)
    return {"success": True, **result}


@router.get("/{reclamation_id}")
async def get_reclamation(
    reclamation_id: str,
    user: dict = Depends(get_current_user),
    db=Depends(get_db),
):
    rec = await db.reclamations.find_one({"id": reclamation_id}, {"_id": 0})
    if not rec or (user.get("role") != "admin" and rec.get("user_id") != user.get("id")):
        raise HTTPException(404, "Réclamation non trouvée")
    return {"success": True, "data": rec}
