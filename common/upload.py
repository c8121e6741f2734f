"""
Catalog Shop - Image Upload Pipeline
=====================================
Validates an uploaded product image, clears prior artifacts for the product,
and writes a normalized original plus a fixed-size thumbnail.

Files are named from the product id so each product owns at most one
original and one thumbnail:
    {UPLOAD_DIR}/original/{pid}_original.{ext}
    {UPLOAD_DIR}/thumb/{pid}_thumb.jpg
"""

import io
import logging
import os
import tempfile
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from PIL import Image, ImageOps, UnidentifiedImageError

from config.settings import (
    UPLOAD_DIR, UPLOAD_URL_PREFIX, ORIGINAL_SUBDIR, THUMB_SUBDIR,
    ALLOWED_IMAGE_TYPES, MAX_FILE_SIZE,
    ORIGINAL_MAX_SIZE, ORIGINAL_QUALITY, PNG_COMPRESS_LEVEL,
    THUMB_SIZE, THUMB_QUALITY,
)
from common.exceptions import ValidationError

logger = logging.getLogger("shop.upload")

FIT_INSIDE = "inside"
FIT_COVER = "cover"

_PIL_FORMATS = {"jpg": "JPEG", "png": "PNG", "webp": "WEBP"}


@dataclass
class UploadedImage:
    """Raw upload as received from the client."""
    data: bytes
    content_type: str
    filename: str = ""

    @property
    def size(self) -> int:
        return len(self.data)


@dataclass
class TransformSpec:
    """How to turn a source buffer into one stored artifact."""
    width: int
    height: int
    fit: str                # FIT_INSIDE or FIT_COVER
    fmt: str                # "jpg" | "png" | "webp"
    quality: Optional[int] = None
    compress_level: Optional[int] = None


@dataclass
class StoredImages:
    """Public paths of the artifacts written for one product."""
    image_path: str
    thumb_path: str


# ==========================================
# Codec
# ==========================================

class ImageTransformer:
    """Abstract codec interface: transform(buffer, spec) -> buffer."""

    def transform(self, data: bytes, spec: TransformSpec) -> bytes:
        raise NotImplementedError


class PillowTransformer(ImageTransformer):

    def transform(self, data: bytes, spec: TransformSpec) -> bytes:
        try:
            img = Image.open(io.BytesIO(data))
            img.load()
        except (UnidentifiedImageError, Image.DecompressionBombError, OSError) as e:
            raise ValidationError("Uploaded file is not a readable image.") from e

        img = ImageOps.exif_transpose(img)
        size = (spec.width, spec.height)
        if spec.fit == FIT_COVER:
            img = ImageOps.fit(img, size, method=Image.LANCZOS)
        else:
            # thumbnail() never enlarges and keeps the aspect ratio
            img.thumbnail(size, Image.LANCZOS)

        pil_format = _PIL_FORMATS[spec.fmt]
        if pil_format == "JPEG" and img.mode != "RGB":
            img = img.convert("RGB")
        elif pil_format == "WEBP" and img.mode not in ("RGB", "RGBA"):
            img = img.convert("RGBA" if "A" in img.getbands() else "RGB")

        params = {}
        if spec.quality is not None:
            params["quality"] = spec.quality
        if spec.compress_level is not None:
            params["compress_level"] = spec.compress_level
        if pil_format == "JPEG":
            params["optimize"] = True

        out = io.BytesIO()
        img.save(out, format=pil_format, **params)
        return out.getvalue()


# ==========================================
# Pipeline
# ==========================================

def check_upload_size(size: int):
    if size > MAX_FILE_SIZE:
        raise ValidationError(f"Image is too large (max {MAX_FILE_SIZE // (1024 * 1024)}MB).")


def original_spec(ext: str) -> TransformSpec:
    """Bounded original, encoded in the source format family."""
    w, h = ORIGINAL_MAX_SIZE
    if ext == "png":
        return TransformSpec(w, h, FIT_INSIDE, "png", compress_level=PNG_COMPRESS_LEVEL)
    return TransformSpec(w, h, FIT_INSIDE, ext, quality=ORIGINAL_QUALITY)


def thumb_spec() -> TransformSpec:
    w, h = THUMB_SIZE
    return TransformSpec(w, h, FIT_COVER, "jpg", quality=THUMB_QUALITY)


class ImagePipeline:
    """
    Upload states: Received → Validated → Cleared → Original Written →
    Thumbnail Written → Done, or Rejected at validation.

    Uploads for the same product id are serialized by a per-id lock;
    different ids proceed independently.
    """

    def __init__(
        self,
        root_dir: str = UPLOAD_DIR,
        url_prefix: str = UPLOAD_URL_PREFIX,
        transformer: Optional[ImageTransformer] = None,
    ):
        self.original_dir = os.path.join(root_dir, ORIGINAL_SUBDIR)
        self.thumb_dir = os.path.join(root_dir, THUMB_SUBDIR)
        self.original_url = f"{url_prefix.rstrip('/')}/{ORIGINAL_SUBDIR}"
        self.thumb_url = f"{url_prefix.rstrip('/')}/{THUMB_SUBDIR}"
        self.transformer = transformer or PillowTransformer()
        # pid -> [lock, number of callers holding or waiting for it]
        self._locks: Dict[int, List] = {}
        self._locks_guard = threading.Lock()

    def ensure_dirs(self):
        """Create storage directories. Raises OSError if they can't be created."""
        os.makedirs(self.original_dir, exist_ok=True)
        os.makedirs(self.thumb_dir, exist_ok=True)

    def validate(self, upload: UploadedImage) -> str:
        """Check declared type and size. Returns the stored extension."""
        ext = ALLOWED_IMAGE_TYPES.get((upload.content_type or "").lower())
        if not ext:
            raise ValidationError("Unsupported image format. Use jpg/png/webp.")
        check_upload_size(upload.size)
        if upload.size == 0:
            raise ValidationError("Uploaded image is empty.")
        return ext

    def process_and_store(self, product_id: int, upload: UploadedImage) -> StoredImages:
        ext = self.validate(upload)

        # Encode both artifacts before touching the disk so a bad buffer leaves no partial state
        original = self.transformer.transform(upload.data, original_spec(ext))
        thumb = self.transformer.transform(upload.data, thumb_spec())

        original_name = f"{product_id}_original.{ext}"
        thumb_name = f"{product_id}_thumb.jpg"

        with self._locked(product_id):
            self.remove_product_images(product_id)
            self.ensure_dirs()
            _atomic_write(os.path.join(self.original_dir, original_name), original)
            _atomic_write(os.path.join(self.thumb_dir, thumb_name), thumb)

        logger.info(f"Stored images for product #{product_id} ({ext}, {upload.size} bytes)")
        return StoredImages(
            image_path=f"{self.original_url}/{original_name}",
            thumb_path=f"{self.thumb_url}/{thumb_name}",
        )

    def remove_product_images(self, product_id: int) -> int:
        """Delete every artifact named '{pid}_*'. Returns number of files removed.

        Missing directories and files are ignored; other OS errors propagate.
        """
        prefix = f"{product_id}_"
        removed = 0
        for directory in (self.original_dir, self.thumb_dir):
            try:
                names = os.listdir(directory)
            except FileNotFoundError:
                continue
            for name in names:
                if not name.startswith(prefix):
                    continue
                try:
                    os.remove(os.path.join(directory, name))
                    removed += 1
                except FileNotFoundError:
                    pass
        if removed:
            logger.info(f"Removed {removed} image file(s) for product #{product_id}")
        return removed

    def list_product_images(self, product_id: int) -> Tuple[list, list]:
        """(original file names, thumbnail file names) currently stored for a product."""
        prefix = f"{product_id}_"
        found = []
        for directory in (self.original_dir, self.thumb_dir):
            try:
                found.append(sorted(n for n in os.listdir(directory) if n.startswith(prefix)))
            except FileNotFoundError:
                found.append([])
        return found[0], found[1]

    @contextmanager
    def _locked(self, product_id: int):
        """Hold the product's lock; the entry is dropped once nobody uses it."""
        with self._locks_guard:
            entry = self._locks.setdefault(product_id, [threading.Lock(), 0])
            entry[1] += 1
        try:
            with entry[0]:
                yield
        finally:
            with self._locks_guard:
                entry[1] -= 1
                if entry[1] == 0:
                    del self._locks[product_id]


def _atomic_write(path: str, data: bytes):
    """Write to a temp file in the same directory, then rename over the target."""
    directory = os.path.dirname(path)
    fd, tmp_path = tempfile.mkstemp(dir=directory, prefix=".tmp-")
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
        os.replace(tmp_path, path)
    except BaseException:
        try:
            os.remove(tmp_path)
        except FileNotFoundError:
            pass
        raise


# Singleton
image_pipeline = ImagePipeline()


def get_image_pipeline() -> ImagePipeline:
    """FastAPI dependency: the process-wide image pipeline."""
    return image_pipeline
