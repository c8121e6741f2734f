"""
Shared fixtures.

Environment is pinned before any app module is imported so settings
never point at a real database or upload directory.
"""
import io
import os
import tempfile

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["UPLOAD_DIR"] = tempfile.mkdtemp(prefix="shop-uploads-")
os.environ["CART_STORAGE_PATH"] = os.path.join(tempfile.mkdtemp(prefix="shop-cart-"), "storage.json")

import pytest
from PIL import Image
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from config.database import Base, get_db
from common.upload import ImagePipeline, get_image_pipeline
from main import app


def make_image(fmt: str = "PNG", size=(64, 48), color=(200, 30, 30)) -> bytes:
    """Encode a solid-color test image."""
    mode = "RGBA" if fmt == "PNG" else "RGB"
    fill = color + (255,) if mode == "RGBA" else color
    buf = io.BytesIO()
    Image.new(mode, size, fill).save(buf, format=fmt)
    return buf.getvalue()


@pytest.fixture
def session_factory():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def upload_root(tmp_path):
    return tmp_path / "uploads"


@pytest.fixture
def pipeline(upload_root):
    return ImagePipeline(root_dir=str(upload_root), url_prefix="/uploads")


@pytest.fixture
def test_client(session_factory, pipeline):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_image_pipeline] = lambda: pipeline
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
