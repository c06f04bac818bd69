# app/repos/product_repo.py
"""Redis-backed product catalog.

The repository is the only writer of the product structures:

    product:{id}      hash with the product fields
    product:ids       list of live ids, insertion order
    product:names     hash name -> id, one entry per live name
    product:counter   cached number of live products

Redis gives no unique constraint. Create and rename WATCH product:names,
check the current holder of the name, then write the name entry together
with the record in one MULTI/EXEC. A name and its record therefore appear
together, so a holder without a record is a dead claim and is taken over.
A lost WATCH race reruns the whole check (see ``watch_retry``).
"""

import math
from contextlib import contextmanager
from typing import Any, Dict, List, Mapping

from redis import Redis
from redis.client import Pipeline
from redis.exceptions import RedisError

from app.domain.exceptions import ConflictError, NotFoundError, StorageError
from app.domain.product import Product
from app.domain.schemas import PaginationParams, ProductFilters
from app.utils.logging import get_logger
from app.utils.retry import watch_retry

logger = get_logger(__name__)

PRODUCT_KEY_PATTERN = "product:*"
PRODUCT_IDS_KEY = "product:ids"
PRODUCT_NAMES_KEY = "product:names"
PRODUCT_COUNTER_KEY = "product:counter"


def product_key(product_id: str) -> str:
    return f"product:{product_id}"


def _int_or_none(raw: str | None) -> int | None:
    try:
        return int(raw)
    except (TypeError, ValueError):
        return None


@contextmanager
def _storage_errors(operation: str, **context):
    try:
        yield
    except RedisError as e:
        logger.error(f"Redis error during {operation}: {e!r}")
        raise StorageError(
            f"Storage failure during {operation}",
            details={"operation": operation, **context, "originalError": repr(e)},
        ) from e


class ProductRepo:
    def __init__(self, redis: Redis):
        self.redis = redis

    # =====================================================
    # QUERIES
    # =====================================================
    def get_by_id(self, product_id: str) -> Product:
        with _storage_errors("get_by_id", productId=product_id):
            data = self.redis.hgetall(product_key(product_id))

        if not Product.is_complete(data):
            if data:
                logger.warning(f"Product {product_id} has an incomplete record, treating it as absent")
            raise NotFoundError("Product", product_id)

        return Product.from_hash(data)

    def list(self, pagination: PaginationParams, filters: ProductFilters | None = None) -> Dict[str, Any]:
        products = self._load_all()

        if filters is not None:
            products = [p for p in products if self._matches(p, filters)]

        total = len(products)
        total_pages = math.ceil(total / pagination.limit)
        start = (pagination.page - 1) * pagination.limit
        page_items = products[start:start + pagination.limit]

        logger.debug(
            f"Listed {len(page_items)} of {total} products "
            f"(page {pagination.page}, limit {pagination.limit})"
        )

        return {
            "items": page_items,
            "pagination": {
                "page": pagination.page,
                "limit": pagination.limit,
                "total": total,
                "totalPages": total_pages,
                "hasNext": pagination.page < total_pages,
                "hasPrev": pagination.page > 1,
            },
        }

    def count(self) -> int:
        with _storage_errors("count"):
            raw = self.redis.get(PRODUCT_COUNTER_KEY)
        try:
            return int(raw or 0)
        except ValueError as e:
            raise StorageError(
                "Stored product counter is malformed",
                details={"originalError": repr(e)},
            ) from e

    # =====================================================
    # COMMANDS
    # =====================================================
    def create(self, fields: Mapping[str, Any]) -> Product:
        product = Product.create(fields)

        with _storage_errors("create", productName=product.name):
            self._insert(product)

        logger.info(f"Product {product.id} created with name '{product.name}'")
        return product

    def update(self, product_id: str, fields: Mapping[str, Any]) -> Product:
        """Full replace; the caller supplies every editable field."""
        return self._modify(product_id, fields, "update")

    def patch(self, product_id: str, fields: Mapping[str, Any]) -> Product:
        return self._modify(product_id, fields, "patch")

    def delete(self, product_id: str) -> None:
        product = self.get_by_id(product_id)

        with _storage_errors("delete", productId=product_id):
            owns_name = self.redis.hget(PRODUCT_NAMES_KEY, product.name) == product.id

            pipe = self.redis.pipeline(transaction=True)
            pipe.delete(product_key(product.id))
            pipe.lrem(PRODUCT_IDS_KEY, 0, product.id)
            if owns_name:
                pipe.hdel(PRODUCT_NAMES_KEY, product.name)
            pipe.decr(PRODUCT_COUNTER_KEY)
            pipe.execute()

        logger.info(f"Product {product_id} ('{product.name}') deleted")

    def reconcile(self) -> Dict[str, Any]:
        """
        Repair pass over the secondary structures.
        -drops ids whose record is gone from product:ids
        -rebuilds product:names from the live records
        -resets product:counter to the number of live ids
        """
        with _storage_errors("reconcile"):
            ids = self.redis.lrange(PRODUCT_IDS_KEY, 0, -1)
            records = self._fetch_records(ids)
            current_names = self.redis.hgetall(PRODUCT_NAMES_KEY)
            counter_before = self.redis.get(PRODUCT_COUNTER_KEY)

            live: List[Product] = []
            dangling: List[str] = []
            for pid, data in zip(ids, records):
                if Product.is_complete(data):
                    live.append(Product.from_hash(data))
                else:
                    dangling.append(pid)

            expected_names: Dict[str, str] = {}
            for p in live:
                if p.name in expected_names and expected_names[p.name] != p.id:
                    logger.warning(
                        f"Duplicate name '{p.name}' held by {expected_names[p.name]} and {p.id}"
                    )
                    continue
                expected_names[p.name] = p.id

            stale_names = [n for n, holder in current_names.items() if expected_names.get(n) != holder]
            restored = {n: pid for n, pid in expected_names.items() if current_names.get(n) != pid}
            live_count = len({p.id for p in live})

            pipe = self.redis.pipeline(transaction=True)
            for pid in dangling:
                pipe.lrem(PRODUCT_IDS_KEY, 0, pid)
            if stale_names:
                pipe.hdel(PRODUCT_NAMES_KEY, *stale_names)
            if restored:
                pipe.hset(PRODUCT_NAMES_KEY, mapping=restored)
            pipe.set(PRODUCT_COUNTER_KEY, live_count)
            pipe.execute()

        report = {
            "danglingIds": dangling,
            "staleNames": stale_names,
            "restoredNames": sorted(restored),
            "counterBefore": _int_or_none(counter_before),
            "counterAfter": live_count,
        }
        if dangling or stale_names or restored or report["counterBefore"] != live_count:
            logger.warning(f"Catalog reconciled: {report}")
        else:
            logger.info("Catalog reconciled, nothing to repair")
        return report

    def clear(self) -> int:
        """Delete every product key. Meant for tests and reseeding only."""
        with _storage_errors("clear"):
            keys = list(self.redis.scan_iter(match=PRODUCT_KEY_PATTERN))
            if keys:
                self.redis.delete(*keys)

        logger.info(f"Cleared {len(keys)} product keys")
        return len(keys)

    # =====================================================
    # helpers
    # =====================================================
    def _modify(self, product_id: str, fields: Mapping[str, Any], operation: str) -> Product:
        product = self.get_by_id(product_id)
        old_name = product.name

        product.apply_update(fields)

        with _storage_errors(operation, productId=product_id):
            self._save(product, old_name)

        logger.info(f"Product {product_id} saved ({operation}), fields: {sorted(fields)}")
        return product

    @watch_retry()
    def _insert(self, product: Product) -> None:
        with self.redis.pipeline(transaction=True) as pipe:
            pipe.watch(PRODUCT_NAMES_KEY)
            self._check_name(pipe, product.name, product.id)

            pipe.multi()
            pipe.hset(PRODUCT_NAMES_KEY, product.name, product.id)
            pipe.hset(product_key(product.id), mapping=product.to_hash())
            pipe.rpush(PRODUCT_IDS_KEY, product.id)
            pipe.incr(PRODUCT_COUNTER_KEY)
            pipe.execute()

    @watch_retry()
    def _save(self, product: Product, old_name: str) -> None:
        key = product_key(product.id)
        renamed = product.name != old_name

        with self.redis.pipeline(transaction=True) as pipe:
            pipe.watch(PRODUCT_NAMES_KEY, key)
            # deleted since it was read: do not resurrect it
            if not pipe.exists(key):
                raise NotFoundError("Product", product.id)
            if renamed:
                self._check_name(pipe, product.name, product.id)
            owns_old_name = renamed and pipe.hget(PRODUCT_NAMES_KEY, old_name) == product.id

            pipe.multi()
            pipe.hset(key, mapping=product.to_hash())
            if renamed:
                pipe.hset(PRODUCT_NAMES_KEY, product.name, product.id)
            if owns_old_name:
                pipe.hdel(PRODUCT_NAMES_KEY, old_name)
            pipe.execute()

    def _check_name(self, pipe: Pipeline, name: str, product_id: str) -> None:
        """Raise ConflictError if another live product holds ``name``.

        Must run while WATCHing product:names. A holder without a complete
        record is a dead claim; the caller overwrites it in its MULTI.
        """
        holder = pipe.hget(PRODUCT_NAMES_KEY, name)
        if holder is None or holder == product_id:
            return

        pipe.watch(product_key(holder))
        if Product.is_complete(pipe.hgetall(product_key(holder))):
            raise ConflictError(
                f"A product named '{name}' already exists",
                details={"existingProductId": holder, "name": name},
            )

        logger.warning(f"Name '{name}' is held by {holder}, which has no record; taking it over")

    def _fetch_records(self, ids: List[str]) -> List[Dict[str, str]]:
        if not ids:
            return []
        pipe = self.redis.pipeline(transaction=False)
        for pid in ids:
            pipe.hgetall(product_key(pid))
        return pipe.execute()

    def _load_all(self) -> List[Product]:
        with _storage_errors("list"):
            ids = self.redis.lrange(PRODUCT_IDS_KEY, 0, -1)
            records = self._fetch_records(ids)

        products: List[Product] = []
        for pid, data in zip(ids, records):
            if not Product.is_complete(data):
                logger.warning(f"Product {pid} is listed in {PRODUCT_IDS_KEY} but has no record, skipping")
                continue
            products.append(Product.from_hash(data))
        return products

    @staticmethod
    def _matches(product: Product, filters: ProductFilters) -> bool:
        if filters.name and filters.name.lower() not in product.name.lower():
            return False
        if filters.min_price is not None and product.price < filters.min_price:
            return False
        if filters.max_price is not None and product.price > filters.max_price:
            return False
        return True
