"""
Catalog Module - Service Layer
================================
Business logic for Categories and Products.
Image artifacts are delegated to the upload pipeline.
"""

import logging
from typing import List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload

from common.exceptions import ValidationError, NotFoundError, ConflictError
from common.helpers import (
    to_positive_int, sanitize_text, safe_decimal, parse_price, normalize_description, MAX_PRICE,
)
from common.upload import ImagePipeline, UploadedImage
from config.settings import CATEGORY_NAME_MAX, PRODUCT_NAME_MAX, DESCRIPTION_MAX
from modules.catalog.models import Category, Product

logger = logging.getLogger("shop.catalog")


def require_id(value, label: str) -> int:
    """Parse a positive id or raise ValidationError('Invalid <label> id.')."""
    parsed = to_positive_int(value)
    if not parsed:
        raise ValidationError(f"Invalid {label} id.")
    return parsed


# ==========================================
# Category Service
# ==========================================

class CategoryService:

    def list_all(self, db: Session) -> List[Category]:
        return db.query(Category).order_by(Category.catid.asc()).all()

    def get_by_id(self, db: Session, catid: int) -> Optional[Category]:
        return db.query(Category).filter(Category.catid == catid).first()

    def create(self, db: Session, name) -> Category:
        clean = self._clean_name(name)
        category = Category(name=clean)
        db.add(category)
        self._flush_unique(db)
        logger.info(f"Category #{category.catid} created: {clean}")
        return category

    def update(self, db: Session, catid, name) -> Category:
        catid = require_id(catid, "category")
        clean = self._clean_name(name)
        category = self.get_by_id(db, catid)
        if not category:
            raise NotFoundError("Category not found.")
        category.name = clean
        self._flush_unique(db)
        return category

    def delete(self, db: Session, catid) -> None:
        catid = require_id(catid, "category")
        category = self.get_by_id(db, catid)
        if not category:
            raise NotFoundError("Category not found.")
        in_use = db.query(Product.pid).filter(Product.catid == catid).first()
        if in_use:
            raise ConflictError("Delete products in this category before deleting it.")
        db.delete(category)
        try:
            db.flush()
        except IntegrityError:
            db.rollback()
            raise ConflictError("Delete products in this category before deleting it.")
        logger.info(f"Category #{catid} deleted")

    # ==========================================
    # Private helpers
    # ==========================================

    def _clean_name(self, name) -> str:
        clean = sanitize_text(name, CATEGORY_NAME_MAX)
        if not clean:
            raise ValidationError(f"Category name is required (1-{CATEGORY_NAME_MAX} chars).")
        return clean

    def _flush_unique(self, db: Session):
        try:
            db.flush()
        except IntegrityError:
            db.rollback()
            raise ConflictError("Category name already exists.")


# ==========================================
# Product Service
# ==========================================

class ProductService:

    def list_all(self, db: Session, catid: Optional[int] = None) -> List[Product]:
        q = db.query(Product).options(joinedload(Product.category))
        if catid:
            q = q.filter(Product.catid == catid)
        return q.order_by(Product.pid.asc()).all()

    def get_by_id(self, db: Session, pid: int) -> Optional[Product]:
        return db.query(Product).options(joinedload(Product.category)).filter(Product.pid == pid).first()

    def get_or_404(self, db: Session, pid) -> Product:
        product = self.get_by_id(db, require_id(pid, "product"))
        if not product:
            raise NotFoundError("Product not found.")
        return product

    def create(
        self, db: Session, data: dict,
        image: Optional[UploadedImage] = None,
        pipeline: Optional[ImagePipeline] = None,
    ) -> Product:
        fields = self._clean_fields(db, data)
        if image:
            pipeline.validate(image)

        product = Product(**fields)
        db.add(product)
        db.flush()

        if image:
            stored = pipeline.process_and_store(product.pid, image)
            product.image_path = stored.image_path
            product.thumb_path = stored.thumb_path
            db.flush()

        db.refresh(product)
        logger.info(f"Product #{product.pid} created: {product.name}")
        return product

    def update(
        self, db: Session, pid, data: dict,
        image: Optional[UploadedImage] = None,
        pipeline: Optional[ImagePipeline] = None,
    ) -> Product:
        pid = require_id(pid, "product")
        fields = self._clean_fields(db, data, require_existing_pid=pid)
        if image:
            pipeline.validate(image)

        p = self.get_by_id(db, pid)
        for key, value in fields.items():
            setattr(p, key, value)
        db.flush()

        if image:
            stored = pipeline.process_and_store(p.pid, image)
            p.image_path = stored.image_path
            p.thumb_path = stored.thumb_path
            db.flush()

        db.refresh(p)
        return p

    def delete(self, db: Session, pid, pipeline: ImagePipeline) -> None:
        p = self.get_or_404(db, pid)
        db.delete(p)
        db.flush()
        pipeline.remove_product_images(p.pid)
        logger.info(f"Product #{p.pid} deleted")

    # ==========================================
    # Private helpers
    # ==========================================

    def _clean_fields(self, db: Session, data: dict, require_existing_pid: Optional[int] = None) -> dict:
        catid = to_positive_int(data.get("catid"))
        name = sanitize_text(data.get("name"), PRODUCT_NAME_MAX)
        price = parse_price(data.get("price"))
        description = normalize_description(data.get("description"), DESCRIPTION_MAX)

        if not catid:
            raise ValidationError("Valid category is required.")
        if not name:
            raise ValidationError(f"Product name is required (1-{PRODUCT_NAME_MAX} chars).")
        if price is None:
            if (safe_decimal(data.get("price")) or 0) > MAX_PRICE:
                raise ValidationError(f"Price can't exceed {MAX_PRICE}.")
            raise ValidationError("Price must be a number >= 0.")

        if require_existing_pid is not None:
            exists = db.query(Product.pid).filter(Product.pid == require_existing_pid).first()
            if not exists:
                raise NotFoundError("Product not found.")

        if not db.query(Category.catid).filter(Category.catid == catid).first():
            raise ValidationError("Selected category does not exist.")

        return {"catid": catid, "name": name, "price": price, "description": description}


# Singletons
category_service = CategoryService()
product_service = ProductService()
