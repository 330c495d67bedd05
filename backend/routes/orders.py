"""
MTR Devis - Routes Commandes client
"""

from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel

from routes.auth import get_current_user
from routes.deps import get_order_service, http_error
from services.errors import DevisError, NotFoundError

router = APIRouter(prefix="/order", tags=["Orders"])


class OrderPlace(BaseModel):
    demande_id: str
    devis_numero: Optional[str] = None
    note: str = ""


@router.post("/client/commander")
async def place_client_order(
    data: OrderPlace,
    user: dict = Depends(get_current_user),
    service=Depends(get_order_service),
):
    try:
        await service.place(user["id"], data.demande_id, data.devis_numero, data.note)
    except NotFoundError:
        raise HTTPException(status_code=403, detail="Accès interdit")
    except DevisError as e:
        raise http_error(e)
    return {"success": True, "message": "Commande confirmée"}


@router.get("/client/status")
async def client_order_status(
    ids: str = Query("", description="ID1,ID2,..."),
    user: dict = Depends(get_current_user),
    service=Depends(get_order_service),
):
    status = await service.status_map(user["id"], ids.split(","))
    return {"success": True, "map": status}
