# app/data/seed.py
from app.data.redis_client import RedisResource
from app.domain.exceptions import ConflictError
from app.repos.product_repo import ProductRepo
from app.utils.logging import get_logger

logger = get_logger(__name__)

DEMO_PRODUCTS = [
    {
        "name": "Mechanical Keyboard",
        "description": "Tenkeyless keyboard with hot-swappable brown switches and PBT keycaps",
        "price": 129.99,
        "qty": 40,
    },
    {
        "name": "Wireless Mouse",
        "description": "Ergonomic 2.4 GHz mouse with a 70 day battery and silent buttons",
        "price": 49.50,
        "qty": 120,
    },
    {
        "name": "27in Monitor",
        "description": "27 inch IPS panel, 2560x1440 at 144 Hz with height adjustable stand",
        "price": 329.00,
        "qty": 15,
    },
    {
        "name": "USB-C Dock",
        "description": "Dock with two HDMI outputs, gigabit ethernet and 100 W passthrough charging",
        "price": 189.90,
        "qty": 25,
    },
    {
        "name": "Noise Cancelling Headphones",
        "description": "Over-ear headphones with active noise cancelling and 30 hours of playback",
        "price": 299.99,
        "qty": 30,
    },
]


def seed(repo: ProductRepo) -> int:
    # not forcing: only seed if empty
    if repo.count() > 0:
        logger.info("Catalog already populated, skipping seed")
        return 0

    created = 0
    for item in DEMO_PRODUCTS:
        try:
            repo.create(item)
            created += 1
        except ConflictError:
            logger.info(f"Seed product '{item['name']}' already exists, skipping")

    logger.info(f"Seeded {created} products")
    return created


if __name__ == "__main__":
    resource = RedisResource()
    resource.connect()
    try:
        seed(ProductRepo(resource.acquire()))
    finally:
        resource.disconnect()
