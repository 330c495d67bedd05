"""
MTR Devis - Calcul des totaux

Les totaux d'un devis sont une fonction pure de ses lignes:
  mtht    = Σ quantite × puht
  mtnetht = Σ quantite × puht × (1 - remise/100)
  mttva   = Σ net_ligne × tva/100
  mfodec  = mtnetht × fodec_pct/100
  mttc    = mtnetht + mttva + mfodec + timbre

Sommes en Decimal, non arrondies. Chaque montant stocké est arrondi
au centime (demi supérieur) séparément; mttc combine les valeurs arrondies.
"""

from decimal import Decimal, ROUND_HALF_UP

_CENT = Decimal("0.01")
_HUNDRED = Decimal(100)


def _dec(value) -> Decimal:
    return Decimal(str(value or 0))


def _cents(value: Decimal) -> Decimal:
    return value.quantize(_CENT, rounding=ROUND_HALF_UP)


def round2(value) -> float:
    """Arrondi monétaire au centime, demi vers le haut"""
    return float(_cents(_dec(value)))


def clamp_pct(value) -> float:
    return min(max(float(value or 0), 0.0), 100.0)


def line_net(quantite, puht, remise_pct) -> Decimal:
    """Montant HT net non arrondi d'une ligne"""
    return _dec(quantite) * _dec(puht) * (1 - _dec(clamp_pct(remise_pct)) / _HUNDRED)


def line_total_ht(quantite, puht, remise_pct) -> float:
    return float(_cents(line_net(quantite, puht, remise_pct)))


def recalc_totals(devis: dict) -> dict:
    """
    Recalcule items[].total_ht et totaux depuis items.
    Modifie et retourne le même dict. fodec_pct et timbre sont conservés.
    """
    mtht = Decimal(0)
    mtnetht = Decimal(0)
    mttva = Decimal(0)

    for item in devis.get("items") or []:
        net = line_net(item.get("quantite"), item.get("puht"), item.get("remise_pct"))

        item["total_ht"] = float(_cents(net))
        mtht += _dec(item.get("quantite")) * _dec(item.get("puht"))
        mtnetht += net
        mttva += net * _dec(clamp_pct(item.get("tva_pct"))) / _HUNDRED

    totaux = devis.setdefault("totaux", {})
    fodec_pct = float(totaux.get("fodec_pct") or 0)
    timbre = _cents(_dec(totaux.get("timbre")))

    mtnetht_r = _cents(mtnetht)
    mttva_r = _cents(mttva)
    mfodec_r = _cents(mtnetht * _dec(fodec_pct) / _HUNDRED)

    totaux["mtht"] = float(_cents(mtht))
    totaux["mtnetht"] = float(mtnetht_r)
    totaux["mttva"] = float(mttva_r)
    totaux["fodec_pct"] = fodec_pct
    totaux["mfodec"] = float(mfodec_r)
    totaux["timbre"] = float(timbre)
    totaux["mttc"] = float(_cents(mtnetht_r + mttva_r + mfodec_r + timbre))
    return devis
