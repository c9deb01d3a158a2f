import logging
from typing import Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError

from app.core.errors import NotFoundError, PersistenceError, ValidationError
from app.models.product import Product
from app.services.sale_builder import money
from app.services.store import store_scope

logger = logging.getLogger(__name__)

PLACEHOLDER_IMAGE = "/placeholder.svg?height=200&width=200&text=Sin+Imagen"
_CACHE_KEY = "products"


def product_to_dict(p: Product) -> Dict:
    return {"id": p.id, "name": p.name, "price": float(money(p.price)), "image": p.image}


class ProductCatalog:
    """Catálogo con lectura cacheada; cualquier cambio publica en el feed e invalida."""

    def __init__(self, ctx):
        self.ctx = ctx

    @staticmethod
    def install(ctx):
        """Suscribe la recarga del catálogo a los cambios y lo precarga."""
        catalog = ProductCatalog(ctx)
        sub = ctx.feed.subscribe("products", lambda _ev: catalog.refresh())
        catalog.refresh()
        return sub

    def refresh(self) -> None:
        # la caché se recarga por evento, no por quien escribe; si la base
        # no responde queda la copia anterior para vender offline
        try:
            self.ctx.products_cache.set(_CACHE_KEY, self._load())
        except PersistenceError as exc:
            logger.warning("catalog refresh failed: %s", exc.message)

    def _load(self) -> List[Dict]:
        try:
            with store_scope(self.ctx.session_factory) as store:
                return [product_to_dict(p) for p in store.get_products()]
        except SQLAlchemyError as exc:
            raise PersistenceError("No se pudo leer el catálogo") from exc

    def list_products(self, search: Optional[str] = None) -> List[Dict]:
        items = self.ctx.products_cache.get_or_load(_CACHE_KEY, self._load, fallback_on=(PersistenceError,))
        if search:
            term = search.strip().lower()
            items = [p for p in items if term in p["name"].lower()]
        return items

    def get_product(self, product_id: int) -> Dict:
        for p in self.list_products():
            if p["id"] == product_id:
                return p
        raise NotFoundError(f"Producto {product_id} no existe", product_id=product_id)

    @staticmethod
    def _check(name: Optional[str], price) -> None:
        if name is not None and not name.strip():
            raise ValidationError("Nombre obligatorio")
        if price is not None and money(price) < 0:
            raise ValidationError("Precio negativo")

    def create(self, name: str, price, image: Optional[str] = None) -> Dict:
        self._check(name, price)
        with store_scope(self.ctx.session_factory) as store:
            p = Product(name=name.strip(), price=money(price), image=image or PLACEHOLDER_IMAGE)
            store.db.add(p)
            store.commit()
            out = product_to_dict(p)
        logger.info("product created id=%s name=%s", out["id"], out["name"])
        self.ctx.feed.publish("products", "created", key=out["id"])
        return out

    def update(self, product_id: int, name: Optional[str] = None, price=None, image: Optional[str] = None) -> Dict:
        self._check(name, price)
        with store_scope(self.ctx.session_factory) as store:
            p = store.get_product(product_id)
            if p is None:
                raise NotFoundError(f"Producto {product_id} no existe", product_id=product_id)
            if name is not None:
                p.name = name.strip()
            if price is not None:
                p.price = money(price)
            if image is not None:
                p.image = image
            store.commit()
            out = product_to_dict(p)
        self.ctx.feed.publish("products", "updated", key=product_id)
        return out

    def delete(self, product_id: int) -> None:
        with store_scope(self.ctx.session_factory) as store:
            p = store.get_product(product_id)
            if p is None:
                raise NotFoundError(f"Producto {product_id} no existe", product_id=product_id)
            store.db.delete(p)
            store.commit()
        logger.info("product deleted id=%s", product_id)
        self.ctx.feed.publish("products", "deleted", key=product_id)
