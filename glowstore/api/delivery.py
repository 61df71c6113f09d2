from fastapi import APIRouter, Query
from glowstore.services.delivery import lookup_charge

router = APIRouter()

@router.get("/charge")
def delivery_charge(state: str = Query(""), city: str = Query(""), subtotal: float = Query(0, ge=0)):
    return lookup_charge(state, city, subtotal)
