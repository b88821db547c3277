# freshmart/main.py
import logging
import os
from contextlib import asynccontextmanager
from datetime import datetime
from typing import AsyncGenerator, List, Optional

from fastapi import BackgroundTasks, Depends, FastAPI, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from freshmart.auth_utils import create_access_token
from freshmart.config import CORS_ORIGINS, LOG_LEVEL, UPLOAD_DIR
from freshmart.db.database import get_db
from freshmart.db.functions import *
from freshmart.db.init_db import init_db
from freshmart.db.schemas import (
    Order as OrderSchema,
    OrderCreate,
    OrderStatusUpdate,
    Product as ProductSchema,
    ProductCreate,
    ProductReviewCreate,
    Review as ReviewSchema,
    ReviewCreate,
    StockUpdate,
    Token,
    User as UserSchema,
    UserCreate,
    UserLogin,
)
from freshmart.dependencies import get_current_user, get_store_owner
from freshmart.events import publish_event, schedule_low_stock_events
from freshmart.store_routes import router as store_router

logging.basicConfig(level=LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator:
    await init_db()
    logger.info("FreshMart backend ready")
    yield


app = FastAPI(title="FreshMart API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

os.makedirs(UPLOAD_DIR, exist_ok=True)
app.mount("/uploads", StaticFiles(directory=UPLOAD_DIR), name="uploads")
app.include_router(store_router)


@app.exception_handler(SQLAlchemyError)
async def database_error_handler(request: Request, exc: SQLAlchemyError):
    logger.error("Database error on %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=500, content={"detail": "Database error"})


@app.get("/")
async def health_check():
    """Health check endpoint."""
    return {"status": "freshmart running"}


@app.get("/test")
async def test_database(db: AsyncSession = Depends(get_db)):
    try:
        await ping_database(db)
        database = "Connected"
    except (SQLAlchemyError, OSError) as e:
        logger.error("Database connection failed: %s", e)
        database = "Disconnected"
    return {"message": "Backend is running!", "database": database, "timestamp": datetime.utcnow()}


# Products
@app.get("/products", response_model=List[ProductSchema])
async def read_products(
    searchquery: str = Query(default='', alias="search"),
    category: Optional[str] = None,
    on_sale: bool = False,
    sort: Optional[str] = Query(None, pattern="^(discount|price|name|rating)$"),
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=500),
    db: AsyncSession = Depends(get_db),
):
    return await get_all_products(db, category, searchquery, on_sale, sort, skip, limit)


@app.get("/products/related/{category}", response_model=List[ProductSchema])
async def read_related_products(category: str, exclude: Optional[int] = None, db: AsyncSession = Depends(get_db)):
    products = await get_related_products(db, category, exclude)
    logger.debug("Found %d related products for %s", len(products), category)
    return products


@app.get("/products/{product_id}", response_model=ProductSchema)
async def read_product(product_id: int, db: AsyncSession = Depends(get_db)):
    return await get_product_by_id(db, product_id)


@app.post("/products", response_model=ProductSchema, status_code=201)
async def create_new_product(product: ProductCreate, owner=Depends(get_store_owner),
                             db: AsyncSession = Depends(get_db)):
    return await create_product(db, product, owner.store_id)


@app.put("/products/{product_id}/stock", response_model=ProductSchema)
async def update_stock(product_id: int, payload: StockUpdate, background_tasks: BackgroundTasks,
                       owner=Depends(get_store_owner), db: AsyncSession = Depends(get_db)):
    product = await update_product_stock(db, owner.store_id, product_id, payload.stock)
    schedule_low_stock_events(background_tasks, [product])
    return product


# Reviews
@app.get("/reviews/{product_id}", response_model=List[ReviewSchema])
async def read_reviews(product_id: int, db: AsyncSession = Depends(get_db)):
    return await get_reviews(db, product_id)


@app.post("/reviews/{product_id}", response_model=ReviewSchema, status_code=201)
async def add_review(product_id: int, review: ReviewCreate, db: AsyncSession = Depends(get_db)):
    return await create_review(db, product_id, review)


@app.post("/reviews", response_model=ReviewSchema, status_code=201)
async def add_product_review(review: ProductReviewCreate, db: AsyncSession = Depends(get_db)):
    return await create_review(db, review.product_id, review)


# Users
@app.post("/users/register", response_model=UserSchema, status_code=201)
async def register(user: UserCreate, db: AsyncSession = Depends(get_db)):
    return await create_user(db, user)


@app.post("/users/login", response_model=Token)
async def login(credentials: UserLogin, db: AsyncSession = Depends(get_db)):
    user = await authenticate_user(db, credentials)
    token = create_access_token({"sub": user.email, "id": user.id, "role": user.role.value})
    return {"access_token": token, "token_type": "bearer", "user": UserSchema.model_validate(user)}


@app.get("/users/me", response_model=UserSchema)
async def read_current_user(user=Depends(get_current_user)):
    return user


# Orders
@app.post("/orders", response_model=OrderSchema, status_code=201)
async def place_order(order: OrderCreate, background_tasks: BackgroundTasks, user=Depends(get_current_user),
                      db: AsyncSession = Depends(get_db)):
    new_order = await create_order(db, user.id, order)
    background_tasks.add_task(
        publish_event,
        "order_placed",
        {"order_id": new_order.id, "user_id": user.id, "total_amount": new_order.total_amount,
         "items": [{"product_id": item.product_id, "quantity": item.quantity} for item in new_order.items]},
    )
    schedule_low_stock_events(background_tasks, [item.product for item in new_order.items])
    return new_order


@app.get("/orders", response_model=List[OrderSchema])
async def read_orders(user=Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    return await get_user_orders(db, user.id)


@app.get("/orders/{order_id}", response_model=OrderSchema)
async def read_order(order_id: int, user=Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    return await get_user_order(db, user.id, order_id)


@app.patch("/orders/{order_id}/status", response_model=OrderSchema)
async def change_order_status(order_id: int, payload: OrderStatusUpdate, owner=Depends(get_store_owner),
                              db: AsyncSession = Depends(get_db)):
    return await update_order_status(db, owner.store_id, order_id, payload.status)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=int(os.getenv("PORT", 5000)))
