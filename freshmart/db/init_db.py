# freshmart/db/init_db.py

from freshmart.db.database import engine, Base
from freshmart.db.models import Store, User, Product, Order, OrderItem, Review


async def init_db():
    async with engine.begin() as conn:
        # Создание всех таблиц
        await conn.run_sync(Base.metadata.create_all)
