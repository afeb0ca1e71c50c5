"""
FontFlow Backend — Test Configuration (conftest.py)
=====================================================

What:  Shared pytest fixtures for the entire test suite.
How:   pytest auto-discovers conftest.py and makes fixtures available to all tests.

Fixture Hierarchy:
    Font buffers (built in memory with fontTools.fontBuilder, no binary fixtures):
    ├── ttf_bytes / otf_bytes / woff_bytes / woff2_bytes
    └── italic_ttf_bytes

    Collaborators:
    ├── memory_store: In-memory ObjectStore recording every call
    ├── mock_db_session: AsyncMock session for unit tests
    └── db_session_factory: aiosqlite in-memory database with the schema created

    HTTP:
    ├── auth_headers: Bearer token for "user-1"
    └── api_client: httpx AsyncClient over ASGITransport with the database
                    and the object store overridden
"""

import os
import tempfile
from io import BytesIO
from typing import Dict, List, Tuple
from unittest.mock import AsyncMock, MagicMock

# Settings are read at import time: configure the environment first
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["STORAGE_BACKEND"] = "local"
os.environ["STORAGE_ROOT"] = tempfile.mkdtemp(prefix="fontflow_test_")
os.environ["JWT_SECRET"] = "test-jwt-secret"
os.environ["URL_SIGNING_SECRET"] = "test-url-signing-secret"
os.environ["PUBLIC_BASE_URL"] = "http://test"
os.environ["LOG_LEVEL"] = "WARNING"

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from fontTools.fontBuilder import FontBuilder  # noqa: E402
from fontTools.pens.t2CharStringPen import T2CharStringPen  # noqa: E402
from fontTools.pens.ttGlyphPen import TTGlyphPen  # noqa: E402
from fontTools.ttLib import TTFont  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from fontflow.database import Base, get_db_session  # noqa: E402
from fontflow.dependencies import get_object_store  # noqa: E402
from fontflow.exceptions import NotFoundError, ObjectStorageError  # noqa: E402
from fontflow.models.font_asset import FontAsset  # noqa: E402,F401
from fontflow.security import create_access_token  # noqa: E402
from fontflow.services.storage import ObjectStore  # noqa: E402


# ══════════════════════════════════════════════════════════════════════════
# Font Builders
# ══════════════════════════════════════════════════════════════════════════

GLYPH_ORDER = [".notdef", "space", "A"]
CHARACTER_MAP = {0x20: "space", 0x41: "A"}
ADVANCE_WIDTH = 600


def _draw_box(pen, glyph_name: str) -> None:
    if glyph_name == "space":
        return
    pen.moveTo((100, 0))
    pen.lineTo((100, 700))
    pen.lineTo((500, 700))
    pen.lineTo((500, 0))
    pen.closePath()


def build_font(
    family: str = "Test Sans",
    style: str = "Regular",
    weight: int = 400,
    cff: bool = False,
    flavor: str = None,
) -> bytes:
    """
    Build a minimal but complete font.

    Args:
        cff:    CFF outlines (OTF) instead of glyf outlines (TTF)
        flavor: None, "woff" or "woff2" container
    """
    ps_name = f"{family}-{style}".replace(" ", "")
    fb = FontBuilder(1000, isTTF=not cff)
    fb.setupGlyphOrder(GLYPH_ORDER)
    fb.setupCharacterMap(CHARACTER_MAP)

    if cff:
        char_strings = {}
        for glyph_name in GLYPH_ORDER:
            pen = T2CharStringPen(ADVANCE_WIDTH, None)
            _draw_box(pen, glyph_name)
            char_strings[glyph_name] = pen.getCharString()
        fb.setupCFF(ps_name, {"FullName": ps_name}, char_strings, {})
        lsb = {}
        for name, char_string in char_strings.items():
            bounds = char_string.calcBounds(None)
            lsb[name] = bounds[0] if bounds else 0
    else:
        glyphs = {}
        for glyph_name in GLYPH_ORDER:
            pen = TTGlyphPen(None)
            _draw_box(pen, glyph_name)
            glyphs[glyph_name] = pen.glyph()
        fb.setupGlyf(glyphs)
        glyph_table = fb.font["glyf"]
        lsb = {name: getattr(glyph_table[name], "xMin", 0) for name in GLYPH_ORDER}

    fb.setupHorizontalMetrics({name: (ADVANCE_WIDTH, lsb[name]) for name in GLYPH_ORDER})
    fb.setupHorizontalHeader(ascent=824, descent=-200)
    fb.setupNameTable(
        {
            "familyName": family,
            "styleName": style,
            "uniqueFontIdentifier": f"FontFlow:{ps_name}",
            "fullName": f"{family} {style}",
            "psName": ps_name,
            "version": "Version 1.000",
            "designer": "FontFlow Tests",
        }
    )
    fb.setupOS2(usWeightClass=weight, sTypoAscender=824, usWinAscent=824, usWinDescent=200)
    fb.setupPost()

    if flavor:
        fb.font.flavor = flavor
    out = BytesIO()
    fb.save(out)
    return out.getvalue()


def read_font(buffer: bytes) -> TTFont:
    return TTFont(BytesIO(buffer))


@pytest.fixture(scope="session")
def ttf_bytes() -> bytes:
    return build_font()


@pytest.fixture(scope="session")
def otf_bytes() -> bytes:
    return build_font(family="Test Serif", cff=True)


@pytest.fixture(scope="session")
def woff_bytes() -> bytes:
    return build_font(family="Test Web", flavor="woff")


@pytest.fixture(scope="session")
def woff2_bytes() -> bytes:
    return build_font(family="Test Web", style="Bold", weight=700, flavor="woff2")


@pytest.fixture(scope="session")
def italic_ttf_bytes() -> bytes:
    return build_font(family="Test Sans", style="Bold Italic", weight=700)


@pytest.fixture
def png_bytes() -> bytes:
    """PNG signature + IHDR chunk start: clearly not a font."""
    return b"\x89PNG\r\n\x1a\n\x00\x00\x00\rIHDR" + b"\x00" * 32


# ══════════════════════════════════════════════════════════════════════════
# Collaborators
# ══════════════════════════════════════════════════════════════════════════


class InMemoryObjectStore(ObjectStore):
    """
    ObjectStore fake keeping objects in a dict.

    put_calls / deleted record every call in order; fail_put_suffix and
    fail_delete_suffix make put() / delete() raise ObjectStorageError for keys
    ending with them.
    """

    def __init__(self):
        self.objects: Dict[str, Tuple[bytes, str]] = {}
        self.put_calls: List[str] = []
        self.deleted: List[str] = []
        self.fail_put_suffix = None
        self.fail_delete_suffix = None
        self.healthy = True

    async def put(self, key: str, data: bytes, content_type: str) -> None:
        if self.fail_put_suffix and key.endswith(self.fail_put_suffix):
            raise ObjectStorageError(context={"op": "put", "key": key})
        self.put_calls.append(key)
        self.objects[key] = (data, content_type)

    async def get(self, key: str) -> bytes:
        if key not in self.objects:
            raise NotFoundError(resource="file", resource_id=key)
        return self.objects[key][0]

    async def delete(self, key: str) -> None:
        if self.fail_delete_suffix and key.endswith(self.fail_delete_suffix):
            raise ObjectStorageError(context={"op": "delete", "key": key})
        self.deleted.append(key)
        self.objects.pop(key, None)

    def signed_url(self, key: str, expires_in: int) -> str:
        return f"https://storage.test/{key}?ttl={expires_in}"

    async def health_check(self) -> bool:
        return self.healthy


@pytest.fixture
def memory_store() -> InMemoryObjectStore:
    return InMemoryObjectStore()


@pytest.fixture
def mock_db_session():
    """
    Mock async database session for service unit tests.

    Usage:
        mock_db_session.execute.return_value.scalar_one_or_none.return_value = font
    """
    session = AsyncMock()
    session.execute = AsyncMock()
    session.flush = AsyncMock()
    session.commit = AsyncMock()
    session.rollback = AsyncMock()
    session.delete = AsyncMock()
    session.close = AsyncMock()
    session.add = MagicMock()
    return session


@pytest_asyncio.fixture
async def db_session_factory():
    """Fresh in-memory SQLite database with the font_assets table."""
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, expire_on_commit=False)

    await engine.dispose()


# ══════════════════════════════════════════════════════════════════════════
# HTTP
# ══════════════════════════════════════════════════════════════════════════


def bearer(user_id: str) -> Dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(user_id)}"}


@pytest.fixture
def auth_headers() -> Dict[str, str]:
    return bearer("user-1")


@pytest_asyncio.fixture
async def api_client(db_session_factory, memory_store):
    """
    HTTPX AsyncClient talking to the app with SQLite and the in-memory store.

    Usage:
        async def test_list(api_client, auth_headers):
            response = await api_client.get("/api/fonts", headers=auth_headers)
    """
    from fontflow.main import app

    async def override_db_session():
        async with db_session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db_session] = override_db_session
    app.dependency_overrides[get_object_store] = lambda: memory_store

    transport = ASGITransport(app=app, raise_app_exceptions=False)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()
