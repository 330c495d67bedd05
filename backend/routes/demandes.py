"""
MTR Devis - Routes Demandes de devis
Un seul jeu de routes pour les 6 types (compression, traction, torsion, fil, grille, autre).
"""

from fastapi import APIRouter, Depends, HTTPException

from models.demande import DemandeCreate, GeneratedPdf, VALID_DEMANDE_TYPES
from routes.auth import get_current_user, require_admin
from routes.deps import get_demande_service, get_registry, get_quotations, http_error
from services.errors import DevisError

router = APIRouter(prefix="/demandes", tags=["Demandes"])


@router.get("/types")
async def list_types(user: dict = Depends(get_current_user)):
    return {"types": VALID_DEMANDE_TYPES}


@router.get("/mine")
async def my_demandes(
    user: dict = Depends(get_current_user),
    registry=Depends(get_registry),
    quotations=Depends(get_quotations),
):
    """Demandes du client connecté, avec indicateur has_devis"""
    try:
        rows = await registry.list_for_user(user["id"])
        done_ids, done_numeros = await quotations.converted_keys(
            [r.get("id") for r in rows], [r.get("numero") for r in rows]
        )
    except DevisError as e:
        raise http_error(e)

    for row in rows:
        numero = (row.get("numero") or "").strip().upper()
        row["has_devis"] = row.get("id") in done_ids or numero in done_numeros
    return {"demandes": rows, "count": len(rows)}


@router.post("/{demande_type}", status_code=201)
async def create_demande(
    demande_type: str,
    data: DemandeCreate,
    user: dict = Depends(get_current_user),
    service=Depends(get_demande_service),
):
    if demande_type not in VALID_DEMANDE_TYPES:
        raise HTTPException(status_code=404, detail=f"Type de demande inconnu: {demande_type}")
    try:
        demande = await service.create(demande_type, user["id"], data)
    except DevisError as e:
        raise http_error(e)
    return {"success": True, "demande_id": demande["id"], "numero": demande["numero"]}


@router.put("/{demande_type}/{demande_id}/pdf")
async def attach_pdf(
    demande_type: str,
    demande_id: str,
    pdf: GeneratedPdf,
    user: dict = Depends(require_admin),
    service=Depends(get_demande_service),
):
    """Enregistre le PDF généré pour la demande (renderer externe)"""
    try:
        updated = await service.attach_generated_pdf(demande_type, demande_id, pdf)
    except DevisError as e:
        raise http_error(e)
    if not updated:
        raise HTTPException(404, "Demande non trouvée")
    return {"success": True}
