"""
Catalog Module - Models
========================
Category and Product. Products reference their category with RESTRICT,
so a category can't be deleted while products still use it.
"""

from sqlalchemy import Column, Integer, String, Numeric, Text, ForeignKey
from sqlalchemy.orm import relationship
from config.database import Base
from config.settings import CATEGORY_NAME_MAX, PRODUCT_NAME_MAX


# ==========================================
# 🗂️ Category
# ==========================================

class Category(Base):
    __tablename__ = "categories"

    catid = Column(Integer, primary_key=True)
    name = Column(String(CATEGORY_NAME_MAX), nullable=False, unique=True)

    products = relationship("Product", back_populates="category", passive_deletes="all")

    def to_dict(self) -> dict:
        return {"catid": self.catid, "name": self.name}

    def __repr__(self):
        return f"<Category {self.name}>"


# ==========================================
# 📦 Product
# ==========================================

class Product(Base):
    __tablename__ = "products"

    pid = Column(Integer, primary_key=True, index=True)
    catid = Column(Integer, ForeignKey("categories.catid", ondelete="RESTRICT"), nullable=False, index=True)
    name = Column(String(PRODUCT_NAME_MAX), nullable=False)
    price = Column(Numeric(10, 2), nullable=False, default=0)
    description = Column(Text, nullable=False, default="")
    image_path = Column(String, nullable=True)
    thumb_path = Column(String, nullable=True)

    category = relationship("Category", back_populates="products")

    def to_dict(self) -> dict:
        return {
            "pid": self.pid,
            "catid": self.catid,
            "category_name": self.category.name if self.category else None,
            "name": self.name,
            "price": f"{self.price:.2f}",
            "description": self.description or "",
            "image_path": self.image_path,
            "thumb_path": self.thumb_path,
        }

    def __repr__(self):
        return f"<Product {self.name} ({self.price})>"
