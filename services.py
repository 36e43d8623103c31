"""
Product use cases: listing and search, CRUD and the embedded review list.

Services raise errors.CatalogError subclasses; they never build HTTP
responses.
"""

import logging
from typing import Any, Dict, Iterator, List

from errors import NotFound, ValidationFailure
from exports import product_pdf, products_csv
from query import ProductQuery
from repository import ProductRepository, serialize
from schemas import ProductIn, ProductUpdate, ReviewIn

logger = logging.getLogger(__name__)


class ProductService:
    def __init__(self, repository: ProductRepository):
        self.repository = repository

    def list_all(self) -> Dict[str, Any]:
        products = self.repository.find_all()
        return {"success": True, "count": f"{len(products)}", "data": serialize(products)}

    def search(self, query: ProductQuery, base_url: str) -> Dict[str, Any]:
        # total counts every filter, the page itself only honours the name filter
        total = self.repository.count(query.criteria)
        products = self.repository.find(
            query.name_criteria,
            projection=query.projection,
            sort=query.sort,
            skip=query.skip,
            limit=query.limit,
        )
        links = query.links(base_url, total)
        return {
            "success": True,
            "next": links["next"],
            "previous": links["previous"],
            "total": total,
            "data": serialize(products),
        }

    def get(self, product_id: str) -> dict:
        product = self.repository.get(product_id)
        if product is None:
            raise NotFound("Product not found")
        return serialize(product)

    def add(self, payload: ProductIn) -> str:
        product_id = self.repository.insert(payload.document())
        logger.info("Created product %s", product_id)
        return str(product_id)

    def modify(self, product_id: str, payload: ProductUpdate) -> dict:
        current = self.repository.get(product_id)
        if current is None:
            raise NotFound("Product not found")
        changes = payload.changes()
        if not changes:
            return serialize(current)
        product = self.repository.update(product_id, changes)
        if product is None:
            # removed between the lookup and the update
            raise NotFound("Product not found")
        logger.info("Updated product %s fields=%s", product_id, sorted(changes))
        return serialize(product)

    def delete(self, product_id: str) -> None:
        if not self.repository.delete(product_id):
            raise NotFound("resource not found")
        logger.info("Deleted product %s", product_id)

    # Reviews

    def add_review(self, product_id: str, payload: ReviewIn) -> List[dict]:
        reviews = self.repository.push_review(product_id, payload.model_dump(exclude_none=True))
        if reviews is None:
            raise NotFound("Product not found")
        logger.info("Added review to product %s", product_id)
        return serialize(reviews)

    def list_reviews(self, product_id: str) -> List[dict]:
        reviews = self.repository.get_reviews(product_id)
        if reviews is None:
            raise NotFound("Product not found")
        return serialize(reviews)

    def modify_review(self, product_id: str, review_id: str, payload: ReviewIn) -> dict:
        product = self.repository.replace_review(product_id, review_id, payload.model_dump(exclude_none=True))
        if product is None:
            raise ValidationFailure("Product id not found")
        logger.info("Replaced review %s on product %s", review_id, product_id)
        return serialize(product)

    def delete_review(self, product_id: str, review_id: str) -> dict:
        product = self.repository.pull_review(product_id, review_id)
        if product is None:
            raise ValidationFailure("Review id not found")
        logger.info("Deleted review %s from product %s", review_id, product_id)
        return serialize(product)

    # Exports and uploads

    def set_image(self, product_id: str, url: str) -> None:
        if not self.repository.set_image(product_id, url):
            raise NotFound("Product not found")
        logger.info("Set image for product %s", product_id)

    def export_csv(self) -> Iterator[str]:
        return products_csv(self.repository.find_all())

    def export_pdf(self, product_id: str) -> bytes:
        product = self.repository.get(product_id)
        if product is None:
            raise NotFound("Product not found")
        return product_pdf(product)
