"""
Catalog Module - API Routes
=============================
JSON CRUD for categories and products. Category writes also accept form bodies.
Product create/update accept multipart forms with an optional image.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Request, Depends, Form, File, UploadFile
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from config.database import get_db
from common.upload import ImagePipeline, UploadedImage, get_image_pipeline, check_upload_size
from modules.catalog.service import category_service, product_service, require_id

router = APIRouter(tags=["catalog"])
logger = logging.getLogger("shop.catalog")


def _read_upload(image: Optional[UploadFile]) -> Optional[UploadedImage]:
    """Turn an optional multipart file into an UploadedImage (None when no file was sent)."""
    if not image or not image.filename:
        return None
    image.file.seek(0, 2)
    size = image.file.tell()
    image.file.seek(0)
    check_upload_size(size)
    return UploadedImage(
        data=image.file.read(),
        content_type=image.content_type or "",
        filename=image.filename,
    )


async def _read_name(request: Request):
    """`name` from a JSON object or a form body; None when the body carries neither."""
    if request.headers.get("content-type", "").startswith("application/json"):
        try:
            data = await request.json()
        except ValueError:
            return None
        return data.get("name") if isinstance(data, dict) else None
    form = await request.form()
    return form.get("name")


def _commit_or_discard_images(db: Session, pipeline: ImagePipeline, pid: int):
    """Commit a new product; if that fails its freshly written images go too."""
    try:
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.error(f"Commit failed for new product #{pid}, removing its images")
        pipeline.remove_product_images(pid)
        raise


# ==========================================
# 🗂️ Categories
# ==========================================

@router.get("/api/categories")
async def list_categories(db: Session = Depends(get_db)):
    return [c.to_dict() for c in category_service.list_all(db)]


@router.post("/api/categories", status_code=201)
async def create_category(request: Request, db: Session = Depends(get_db)):
    category = category_service.create(db, await _read_name(request))
    db.commit()
    return category.to_dict()


@router.put("/api/categories/{catid}")
async def update_category(catid: str, request: Request, db: Session = Depends(get_db)):
    category = category_service.update(db, catid, await _read_name(request))
    db.commit()
    return category.to_dict()


@router.delete("/api/categories/{catid}")
async def delete_category(catid: str, db: Session = Depends(get_db)):
    category_service.delete(db, catid)
    db.commit()
    return {"success": True}


# ==========================================
# 📦 Products
# ==========================================

@router.get("/api/products")
async def list_products(catid: Optional[str] = None, db: Session = Depends(get_db)):
    cat_filter = require_id(catid, "category") if catid else None
    return [p.to_dict() for p in product_service.list_all(db, cat_filter)]


@router.get("/api/products/{pid}")
async def get_product(pid: str, db: Session = Depends(get_db)):
    return product_service.get_or_404(db, pid).to_dict()


# Image work is CPU-bound, so these two run in the threadpool (plain def)
@router.post("/api/products", status_code=201)
def create_product(
    catid: str = Form(None),
    name: str = Form(None),
    price: str = Form(None),
    description: str = Form(None),
    image: Optional[UploadFile] = File(None),
    db: Session = Depends(get_db),
    pipeline: ImagePipeline = Depends(get_image_pipeline),
):
    product = product_service.create(db, {
        "catid": catid, "name": name, "price": price, "description": description,
    }, _read_upload(image), pipeline)
    _commit_or_discard_images(db, pipeline, product.pid)
    return product.to_dict()


@router.put("/api/products/{pid}")
def update_product(
    pid: str,
    catid: str = Form(None),
    name: str = Form(None),
    price: str = Form(None),
    description: str = Form(None),
    image: Optional[UploadFile] = File(None),
    db: Session = Depends(get_db),
    pipeline: ImagePipeline = Depends(get_image_pipeline),
):
    product = product_service.update(db, pid, {
        "catid": catid, "name": name, "price": price, "description": description,
    }, _read_upload(image), pipeline)
    db.commit()
    return product.to_dict()


@router.delete("/api/products/{pid}")
def delete_product(
    pid: str,
    db: Session = Depends(get_db),
    pipeline: ImagePipeline = Depends(get_image_pipeline),
):
    product_service.delete(db, pid, pipeline)
    db.commit()
    return {"success": True}
