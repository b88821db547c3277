# freshmart/db/functions.py
import logging
from datetime import date
from typing import List, Optional

from fastapi import HTTPException
from sqlalchemy import func, text
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from sqlalchemy.orm import selectinload

from freshmart.db.models import (
    ORDER_STATUS_FLOW, Order, OrderItem, OrderStatus, Product, Review, RoleEnum, Store, User,
)
from freshmart.db.schemas import (
    OrderCreate, ProductCreate, ProductUpdate, ReviewCreate, StoreProduct, UserCreate, UserLogin,
)
from freshmart.auth_utils import hash_password, verify_password
from freshmart.pricing import auto_discount, line_total

logger = logging.getLogger(__name__)

PRODUCT_SORTS = {
    "discount": (Product.discount.desc(), Product.id),
    "price": (Product.price, Product.id),
    "name": (Product.name, Product.id),
    "rating": (Product.rating.desc(), Product.id),
}


async def ping_database(db: AsyncSession):
    await db.execute(text("SELECT 1"))


# Товары (Product)
async def get_all_products(db: AsyncSession, category: Optional[str] = None, search: str = '',
                           on_sale: bool = False, sort: Optional[str] = None, skip: int = 0, limit: int = 100):
    query = select(Product)
    if category:
        query = query.filter(Product.category == category)
    if search:
        query = query.filter(Product.name.ilike(f"%{search}%"))
    if on_sale:
        query = query.filter(Product.discount > 0)
    query = query.order_by(*PRODUCT_SORTS.get(sort, (Product.id,))).offset(skip).limit(limit)
    result = await db.execute(query)
    products = result.scalars().all()
    logger.debug("get_all_products: category=%s search=%r found=%d", category, search, len(products))
    return products


async def get_product_by_id(db: AsyncSession, product_id: int):
    result = await db.execute(select(Product).filter(Product.id == product_id))
    product = result.scalar_one_or_none()
    if not product:
        raise HTTPException(status_code=404, detail="Product not found")
    return product


async def get_store_product(db: AsyncSession, store_id: int, product_id: int):
    """A product of the given store; other stores' products are reported as missing."""
    product = await get_product_by_id(db, product_id)
    if product.store_id != store_id:
        raise HTTPException(status_code=404, detail="Product not found")
    return product


async def get_related_products(db: AsyncSession, category: str, exclude: Optional[int] = None, limit: int = 3):
    query = select(Product).filter(Product.category == category)
    if exclude is not None:
        query = query.filter(Product.id != exclude)
    result = await db.execute(query.order_by(Product.id).limit(limit))
    return result.scalars().all()


async def get_store_products(db: AsyncSession, store_id: int) -> List[StoreProduct]:
    result = await db.execute(
        select(Product, Store.name)
        .outerjoin(Store, Product.store_id == Store.id)
        .filter(Product.store_id == store_id)
        .order_by(Product.created_at.desc(), Product.id.desc())
    )
    return [
        StoreProduct.model_validate(product).model_copy(update={"store_name": store_name})
        for product, store_name in result.all()
    ]


async def create_product(db: AsyncSession, product: ProductCreate, store_id: int, today: date = None):
    discount = product.discount
    if discount is None:
        discount = auto_discount(product.expiry_date, today)
    new_product = Product(
        name=product.name,
        category=product.category,
        price=product.price,
        stock=product.stock,
        discount=discount,
        expiry_date=product.expiry_date,
        description=product.description,
        image_url=product.image_url or "",
        store_id=store_id,
        rating=0,
        review_count=0,
    )
    db.add(new_product)
    await db.commit()
    await db.refresh(new_product)
    logger.info("Product %s (%s) added to store %s with %s%% discount",
                new_product.id, new_product.name, store_id, discount)
    return new_product


async def update_product(db: AsyncSession, store_id: int, product_id: int, data: ProductUpdate, today: date = None):
    product = await get_store_product(db, store_id, product_id)
    changes = data.model_dump(exclude_unset=True)
    for field, value in changes.items():
        setattr(product, field, value)
    if "expiry_date" in changes and "discount" not in changes:
        product.discount = auto_discount(product.expiry_date, today)
    await db.commit()
    await db.refresh(product)
    return product


async def update_product_stock(db: AsyncSession, store_id: int, product_id: int, stock: int):
    if stock < 0:
        raise HTTPException(status_code=400, detail="Stock must be non-negative.")
    product = await get_store_product(db, store_id, product_id)
    old_stock = product.stock
    product.stock = stock
    await db.commit()
    await db.refresh(product)
    logger.info("Stock of product %s changed %s -> %s", product_id, old_stock, stock)
    return product


async def delete_product(db: AsyncSession, store_id: int, product_id: int):
    product = await get_store_product(db, store_id, product_id)
    ordered = await db.execute(select(func.count(OrderItem.id)).filter(OrderItem.product_id == product_id))
    if ordered.scalar_one():
        raise HTTPException(status_code=400, detail="Product has order history and cannot be deleted")
    await db.delete(product)
    await db.commit()
    return product


async def refresh_auto_discounts(db: AsyncSession, store_id: int, today: date = None) -> int:
    """Raises every product's discount to at least its expiry-based discount."""
    result = await db.execute(select(Product).filter(Product.store_id == store_id))
    updated = 0
    for product in result.scalars().all():
        discount = max(product.discount or 0, auto_discount(product.expiry_date, today))
        if discount != product.discount:
            product.discount = discount
            updated += 1
    await db.commit()
    logger.info("Auto-discounts refreshed for store %s: %d products updated", store_id, updated)
    return updated


# Отзывы (Review)
async def get_reviews(db: AsyncSession, product_id: int):
    result = await db.execute(
        select(Review).filter(Review.product_id == product_id).order_by(Review.date.desc(), Review.id.desc())
    )
    return result.scalars().all()


async def create_review(db: AsyncSession, product_id: int, review: ReviewCreate):
    product = await get_product_by_id(db, product_id)
    new_review = Review(product_id=product_id, author=review.author, rating=review.rating, comment=review.comment)
    db.add(new_review)
    await db.flush()

    stats = await db.execute(
        select(func.avg(Review.rating), func.count(Review.id)).filter(Review.product_id == product_id)
    )
    average, count = stats.one()
    product.rating = round(float(average), 1)
    product.review_count = count

    await db.commit()
    await db.refresh(new_review)
    return new_review


# Пользователи (User)
async def get_user_by_id(db: AsyncSession, user_id: int):
    result = await db.execute(select(User).filter(User.id == user_id))
    return result.scalar_one_or_none()


async def get_user_by_email(db: AsyncSession, email: str):
    result = await db.execute(select(User).filter(User.email == email))
    return result.scalar_one_or_none()


async def get_user_by_username(db: AsyncSession, username: str):
    result = await db.execute(select(User).filter(User.username == username))
    return result.scalar_one_or_none()


async def create_user(db: AsyncSession, user: UserCreate):
    if await get_user_by_username(db, user.username):
        raise HTTPException(status_code=400, detail=f"User {user.username} already exists")
    if await get_user_by_email(db, user.email):
        raise HTTPException(status_code=400, detail=f"User {user.email} already exists")

    store_id = None
    if user.role == RoleEnum.store_owner:
        # владелец всегда получает собственный магазин
        store = Store(name=user.store_name or f"{user.username}'s Store")
        db.add(store)
        await db.flush()
        store_id = store.id

    db_user = User(
        username=user.username,
        email=user.email,
        hashed_password=hash_password(user.password),
        role=user.role,
        store_id=store_id,
    )
    db.add(db_user)
    await db.commit()
    await db.refresh(db_user)
    logger.info("Registered %s %s", db_user.role.value, db_user.username)
    return db_user


async def authenticate_user(db: AsyncSession, credentials: UserLogin):
    if credentials.email:
        user = await get_user_by_email(db, credentials.email)
    elif credentials.username:
        user = await get_user_by_username(db, credentials.username)
    else:
        raise HTTPException(status_code=400, detail="Email or username is required")

    if not user or not verify_password(credentials.password, user.hashed_password):
        raise HTTPException(status_code=401, detail="Invalid username or password")
    return user


# Заказы (Order)
def _order_query():
    return select(Order).options(selectinload(Order.items).selectinload(OrderItem.product))


async def get_order_with_items(db: AsyncSession, order_id: int):
    result = await db.execute(
        _order_query().filter(Order.id == order_id).execution_options(populate_existing=True)
    )
    order = result.scalar_one_or_none()
    if not order:
        raise HTTPException(status_code=404, detail="Order not found")
    return order


async def create_order(db: AsyncSession, user_id: int, order: OrderCreate):
    """Places an order: checks and decrements stock, snapshots prices, commits once."""
    quantities = {}
    for item in order.items:
        quantities[item.product_id] = quantities.get(item.product_id, 0) + item.quantity

    result = await db.execute(select(Product).filter(Product.id.in_(quantities)).with_for_update())
    products = {product.id: product for product in result.scalars().all()}
    for product_id in quantities:
        if product_id not in products:
            raise HTTPException(status_code=404, detail=f"Product {product_id} not found")

    new_order = Order(user_id=user_id, status=OrderStatus.placed, payment_method=order.payment_method)
    total = 0.0
    for product_id, quantity in quantities.items():
        product = products[product_id]
        if product.stock < quantity:
            raise HTTPException(status_code=400, detail=f"Insufficient stock for {product.name}")
        product.stock -= quantity
        discount = product.discount or 0
        new_order.items.append(
            OrderItem(product_id=product_id, quantity=quantity, price=product.price, discount=discount)
        )
        total += line_total(product.price, discount, quantity)
    new_order.total_amount = round(total, 2)

    db.add(new_order)
    await db.commit()
    logger.info("Order %s placed by user %s: %d items, total %.2f",
                new_order.id, user_id, len(quantities), new_order.total_amount)
    return await get_order_with_items(db, new_order.id)


async def get_user_orders(db: AsyncSession, user_id: int):
    result = await db.execute(
        _order_query().filter(Order.user_id == user_id).order_by(Order.order_date.desc(), Order.id.desc())
    )
    return result.scalars().all()


async def get_user_order(db: AsyncSession, user_id: int, order_id: int):
    order = await get_order_with_items(db, order_id)
    if order.user_id != user_id:
        raise HTTPException(status_code=404, detail="Order not found")
    return order


async def get_store_orders(db: AsyncSession, store_id: int):
    store_order_ids = (
        select(OrderItem.order_id)
        .join(Product, OrderItem.product_id == Product.id)
        .filter(Product.store_id == store_id)
    )
    result = await db.execute(
        _order_query().filter(Order.id.in_(store_order_ids)).order_by(Order.order_date.desc(), Order.id.desc())
    )
    return result.scalars().all()


async def update_order_status(db: AsyncSession, store_id: int, order_id: int, status: OrderStatus):
    order = await get_order_with_items(db, order_id)
    if not any(item.product is not None and item.product.store_id == store_id for item in order.items):
        raise HTTPException(status_code=404, detail="Order not found")

    if ORDER_STATUS_FLOW.index(status) < ORDER_STATUS_FLOW.index(order.status):
        raise HTTPException(
            status_code=400,
            detail=f"Cannot move order from {order.status.value} back to {status.value}",
        )
    if status != order.status:
        logger.info("Order %s status %s -> %s", order_id, order.status.value, status.value)
        order.status = status
        await db.commit()
    return await get_order_with_items(db, order_id)
