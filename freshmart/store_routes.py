# freshmart/store_routes.py
"""Store-owner dashboard API: inventory, uploads, discounts, orders and analytics."""
import logging
import os
import random
import time
from datetime import date, datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, UploadFile
from fastapi.concurrency import run_in_threadpool
from sqlalchemy.ext.asyncio import AsyncSession

from freshmart.config import MAX_UPLOAD_SIZE, UPLOAD_DIR
from freshmart.db import analytics
from freshmart.db.database import get_db
from freshmart.db.functions import (
    create_product, delete_product, get_store_orders, get_store_products, refresh_auto_discounts, update_product,
)
from freshmart.db.schemas import (
    DiscountOffer, DiscountRefreshResult, Order as OrderSchema, Product as ProductSchema, ProductCreate,
    ProductUpdate, StoreProduct,
)
from freshmart.dependencies import get_store_owner

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api")

CHUNK_SIZE = 64 * 1024


def _write_upload(source, path: str) -> int:
    size = 0
    with open(path, "wb") as out:
        while True:
            chunk = source.read(CHUNK_SIZE)
            if not chunk:
                break
            size += len(chunk)
            if size > MAX_UPLOAD_SIZE:
                break
            out.write(chunk)
    if size > MAX_UPLOAD_SIZE:
        os.remove(path)
        raise HTTPException(status_code=413, detail="Image exceeds the 5MB limit")
    return size


def _upload_path(image_url: str) -> str:
    return os.path.join(UPLOAD_DIR, image_url.rsplit("/", 1)[-1])


async def save_upload(file: UploadFile) -> str:
    """Stores an uploaded image and returns the URL it is served from."""
    if not (file.content_type or "").startswith("image/"):
        raise HTTPException(status_code=400, detail="Only image uploads are allowed")

    extension = os.path.splitext(file.filename or "")[1].lower()
    filename = f"image-{int(time.time() * 1000)}-{random.randint(0, 10 ** 9)}{extension}"
    size = await run_in_threadpool(_write_upload, file.file, os.path.join(UPLOAD_DIR, filename))

    logger.debug("Saved upload %s (%d bytes)", filename, size)
    return f"/uploads/{filename}"


# Products
@router.get("/products", response_model=List[StoreProduct])
async def read_store_products(owner=Depends(get_store_owner), db: AsyncSession = Depends(get_db)):
    products = await get_store_products(db, owner.store_id)
    logger.debug("Found %d products for store %s", len(products), owner.store_id)
    return products


@router.post("/products", response_model=ProductSchema, status_code=201)
async def upload_product(
    name: str = Form(..., min_length=1),
    category: str = Form(..., min_length=1),
    price: float = Form(..., ge=0),
    stock: int = Form(0, ge=0),
    discount: Optional[int] = Form(None, ge=0, le=100),
    expiry_date: Optional[date] = Form(None, alias="expiryDate"),
    description: str = Form(""),
    image: Optional[UploadFile] = File(None),
    owner=Depends(get_store_owner),
    db: AsyncSession = Depends(get_db),
):
    product = ProductCreate(
        name=name,
        category=category,
        price=price,
        stock=stock,
        discount=discount,
        expiry_date=expiry_date,
        description=description,
    )
    if image is not None and image.filename:
        product.image_url = await save_upload(image)

    try:
        return await create_product(db, product, owner.store_id)
    except Exception:
        if product.image_url:
            os.remove(_upload_path(product.image_url))
            logger.debug("Removed upload %s of a product that was not created", product.image_url)
        raise


@router.put("/products/{product_id}", response_model=ProductSchema)
async def edit_product(product_id: int, data: ProductUpdate, owner=Depends(get_store_owner),
                       db: AsyncSession = Depends(get_db)):
    return await update_product(db, owner.store_id, product_id, data)


@router.delete("/products/{product_id}", response_model=ProductSchema)
async def remove_product(product_id: int, owner=Depends(get_store_owner), db: AsyncSession = Depends(get_db)):
    return await delete_product(db, owner.store_id, product_id)


# Discounts
@router.get("/discounts", response_model=List[DiscountOffer])
async def read_discount_offers(owner=Depends(get_store_owner), db: AsyncSession = Depends(get_db)):
    return await analytics.discount_offers(db, owner.store_id)


@router.post("/discounts/refresh", response_model=DiscountRefreshResult)
async def apply_auto_discounts(owner=Depends(get_store_owner), db: AsyncSession = Depends(get_db)):
    return {"updated": await refresh_auto_discounts(db, owner.store_id)}


# Orders
@router.get("/orders", response_model=List[OrderSchema])
async def read_store_orders(owner=Depends(get_store_owner), db: AsyncSession = Depends(get_db)):
    return await get_store_orders(db, owner.store_id)


# Analytics
@router.get("/analytics/test")
async def analytics_test():
    return {"message": "Analytics test endpoint working!", "timestamp": datetime.utcnow()}


@router.get("/analytics")
async def read_analytics(time_range: str = Query("30d", alias="timeRange", pattern="^(7d|30d|90d)$"),
                         owner=Depends(get_store_owner), db: AsyncSession = Depends(get_db)):
    return await analytics.build_analytics(db, owner.store_id, time_range)


@router.get("/analytics/debug-orders")
async def read_debug_orders(owner=Depends(get_store_owner), db: AsyncSession = Depends(get_db)):
    return await analytics.debug_orders(db, owner.store_id)


@router.get("/waste-logs")
async def read_waste_logs(owner=Depends(get_store_owner), db: AsyncSession = Depends(get_db)):
    return await analytics.waste_logs(db, owner.store_id)


@router.get("/notifications")
async def read_notifications(owner=Depends(get_store_owner), db: AsyncSession = Depends(get_db)):
    return await analytics.notifications(db, owner.store_id)
