from typing import Any, Dict, Optional
from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from tourpay.discounts.service import verify_discount
from tourpay.utils.rate_limit import optional_rate_limit

router = APIRouter(prefix="/api/v1/discounts", tags=["Discounts API"])

_STATUS_CODES = {"missing": 400, "not_found": 404, "invalid": 400, "valid": 200}


class VerifyRequest(BaseModel):
    code: Optional[str] = None


@router.post("/verify", dependencies=[Depends(optional_rate_limit(times=20, seconds=60))])
def verify_code(payload: VerifyRequest) -> Any:
    """
    Vérifie un code promo pour l'affichage côté checkout (lecture seule).
    Body: { "code": "SUMMER10" }
    - 400 si code manquant, 404 si inconnu, 400 (+reason) si inactif/expiré/épuisé
    - 200 {success: true, data: {code, discountType, value}}
    """
    status, data = verify_discount(payload.code)
    body: Dict[str, Any] = {"success": status == "valid", **data}
    return JSONResponse(status_code=_STATUS_CODES.get(status, 400), content=body)
