from typing import Optional
from fastapi import APIRouter, Query
from glowstore.core.errors import NotFoundError
from glowstore.db.supabase import get_client, first

router = APIRouter()

@router.get("")
def list_products(category: Optional[str] = None, featured: Optional[bool] = None,
                  q: Optional[str] = Query(None, min_length=1), limit: int = Query(100, ge=1, le=500)):
    query = get_client().table("products").select("*")
    if category:
        query = query.eq("category", category)
    if featured is not None:
        query = query.eq("featured", featured)
    if q:
        query = query.ilike("title", f"%{q}%")
    res = query.order("created_at", desc=True).limit(limit).execute()
    return res.data or []

def product_reviews(product_id: str) -> list:
    res = get_client().table("reviews").select("*").eq("product_id", product_id).order("created_at", desc=True).execute()
    return res.data or []

@router.get("/{product_id}")
def get_product(product_id: str):
    product = first(get_client().table("products").select("*").eq("id", product_id).execute())
    if product is None:
        raise NotFoundError("Product", product_id)
    reviews = product_reviews(product_id)
    product["reviews"] = reviews
    product["review_count"] = len(reviews)
    product["average_rating"] = round(sum(r["rating"] for r in reviews) / len(reviews), 1) if reviews else None
    return product

@router.get("/{product_id}/reviews")
def get_product_reviews(product_id: str):
    return product_reviews(product_id)
