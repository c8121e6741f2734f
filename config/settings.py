"""
Catalog Shop - Centralized Configuration
=========================================
All environment variables and constants are loaded here.
No other module should call os.getenv() directly.
"""

import os
from dotenv import load_dotenv

load_dotenv()


# ==========================================
# 🗄️ Database
# ==========================================
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./db/shop.db")


# ==========================================
# 📁 File Upload
# ==========================================
UPLOAD_DIR = os.getenv("UPLOAD_DIR", "uploads")
UPLOAD_URL_PREFIX = os.getenv("UPLOAD_URL_PREFIX", "/uploads")
ORIGINAL_SUBDIR = "original"
THUMB_SUBDIR = "thumb"

ALLOWED_IMAGE_TYPES = {
    "image/jpeg": "jpg",
    "image/png": "png",
    "image/webp": "webp",
}
MAX_FILE_SIZE = 10 * 1024 * 1024  # 10 MB

ORIGINAL_MAX_SIZE = (1400, 1400)
ORIGINAL_QUALITY = 86
PNG_COMPRESS_LEVEL = 9
THUMB_SIZE = (360, 360)
THUMB_QUALITY = 82


# ==========================================
# 🗂️ Catalog
# ==========================================
CATEGORY_NAME_MAX = 80
PRODUCT_NAME_MAX = 120
DESCRIPTION_MAX = 4000

# Base URL of the catalog API the storefront and cart talk to
CATALOG_API_URL = os.getenv("CATALOG_API_URL", "http://127.0.0.1:8000")
CATALOG_TIMEOUT = float(os.getenv("CATALOG_TIMEOUT") or "10")


# ==========================================
# 🛒 Cart
# ==========================================
CART_STORAGE_PATH = os.getenv("CART_STORAGE_PATH", ".cart/storage.json")
CART_STORAGE_KEY = os.getenv("CART_STORAGE_KEY", "shop-cart-v1")
CART_MAX_QTY = 999


# ==========================================
# 🔧 App
# ==========================================
DEBUG = os.getenv("DEBUG", "false").lower() == "true"
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
