"""
╔══════════════════════════════════════════════════════════════════════════════╗
║  MTR Devis - Routes Devis                                                    ║
║                                                                              ║
║  - Prochain numéro (indicatif)                                               ║
║  - Demandes sans devis (6 collections)                                       ║
║  - Création d'un devis depuis une ou plusieurs demandes (même client)        ║
║  - Devis d'une demande (admin / client propriétaire)                         ║
╚══════════════════════════════════════════════════════════════════════════════╝
"""

from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, Query

from models.devis import DevisFromDemandes
from routes.auth import get_current_user, require_admin
from routes.deps import (
    get_numbering, get_aggregator, get_quotation_service, get_quotations,
    get_registry, http_error,
)
from email_service import devis_pdf_url
from services.demandes import owner_of
from services.errors import DevisError

router = APIRouter(prefix="/devis", tags=["Devis"])


@router.get("/next-number")
async def next_devis_number(
    user: dict = Depends(require_admin),
    numbering=Depends(get_numbering),
):
    """Aperçu du prochain n° de devis (peut différer du n° finalement attribué)"""
    try:
        numero = await numbering.preview_next_quotation_number()
    except DevisError as e:
        raise http_error(e)
    return {"success": True, "numero": numero}


@router.get("/numeros-all")
async def list_demandes_sans_devis(
    q: Optional[str] = Query(None, description="Filtre sur le numéro (sans casse)"),
    limit: int = Query(500),
    with_type: bool = Query(False),
    user: dict = Depends(require_admin),
    aggregator=Depends(get_aggregator),
):
    """Numéros de demandes (tous types) qui n'ont pas encore de devis"""
    try:
        data = await aggregator.list_unconverted(q, limit)
    except DevisError as e:
        raise http_error(e)

    if with_type:
        payload = [{"id": d["id"], "numero": d["numero"], "type": d["type"]} for d in data]
    else:
        payload = [{"id": d["id"], "numero": d["numero"]} for d in data]
    return {"success": True, "data": payload}


@router.post("/from-demandes")
async def create_from_demandes(
    data: DevisFromDemandes,
    user: dict = Depends(require_admin),
    service=Depends(get_quotation_service),
):
    """
    Crée UN devis à partir de plusieurs demandes du même client.
    Chaque ligne garde le numéro de sa demande d'origine.
    """
    try:
        devis = await service.create_from_demandes(data.demande_ids, data.lines, data.send_email)
    except DevisError as e:
        raise http_error(e)

    return {
        "success": True,
        "devis": {"id": devis["id"], "numero": devis["numero"]},
        "totaux": devis["totaux"],
        "pdf": devis_pdf_url(devis["numero"]),
    }


@router.get("/by-demande/{demande_id}")
async def get_by_demande_admin(
    demande_id: str,
    numero: Optional[str] = Query(None),
    user: dict = Depends(require_admin),
    service=Depends(get_quotation_service),
):
    try:
        devis = await service.find_for_demande(demande_id, numero)
    except DevisError as e:
        raise http_error(e)
    if not devis:
        return {"success": True, "exists": False}

    demande_numeros = []
    for n in [devis.get("demande_numero")] + [d.get("numero") for d in devis.get("demandes") or []]:
        if n and n not in demande_numeros:
            demande_numeros.append(n)

    return {
        "success": True,
        "exists": True,
        "devis": {"id": devis["id"], "numero": devis["numero"]},
        "demande_numeros": demande_numeros,
        "pdf": devis_pdf_url(devis["numero"]),
    }


@router.get("/client/by-demande/{demande_id}")
async def get_by_demande_client(
    demande_id: str,
    numero: Optional[str] = Query(None),
    user: dict = Depends(get_current_user),
    registry=Depends(get_registry),
    service=Depends(get_quotation_service),
):
    """Devis d'une demande, visible uniquement par son propriétaire (ou admin)"""
    try:
        found = await registry.resolve_any(demande_id)
        if not found:
            return {"success": False, "exists": False}
        if user.get("role") != "admin" and owner_of(found[1]) != user.get("id"):
            return {"success": False, "exists": False}

        devis = await service.find_for_demande(demande_id, numero or found[1].get("numero"))
    except DevisError as e:
        raise http_error(e)
    if not devis:
        return {"success": False, "exists": False}

    return {
        "success": True,
        "exists": True,
        "devis": {"id": devis["id"], "numero": devis["numero"]},
        "pdf": devis_pdf_url(devis["numero"]),
    }


@router.get("/{devis_id}")
async def get_devis(
    devis_id: str,
    user: dict = Depends(require_admin),
    quotations=Depends(get_quotations),
):
    try:
        devis = await quotations.get(devis_id)
    except DevisError as e:
        raise http_error(e)
    if not devis:
        raise HTTPException(404, "Devis non trouvé")
    return {"devis": devis}
