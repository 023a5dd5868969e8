"""Shared test fixtures."""

import io
import os

# Keep the module-level app free of Redis and Prometheus during tests
os.environ.setdefault("LETTERFLOW_RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("LETTERFLOW_METRICS_ENABLED", "false")

from datetime import datetime, timedelta, timezone  # noqa: E402

import pytest  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from jose import jwt  # noqa: E402
from PIL import Image  # noqa: E402
from reportlab.lib.pagesizes import letter as LETTER_SIZE  # noqa: E402
from reportlab.pdfgen import canvas  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from letterflow.collaborators.activity import SqlActivityLogger  # noqa: E402
from letterflow.collaborators.base import (  # noqa: E402
    DocumentNotFoundError,
    DocumentStore,
    NotificationDispatcher,
    StoredDocument,
)
from letterflow.collaborators.directory import SqlTemplateProvider, SqlUserDirectory  # noqa: E402
from letterflow.collaborators.images import ImageFetcher  # noqa: E402
from letterflow.collaborators.qr import QrCodeEncoder  # noqa: E402
from letterflow.collaborators.renderer import TemplatePdfRenderer  # noqa: E402
from letterflow.config import Settings, settings  # noqa: E402
from letterflow.db.base import Base  # noqa: E402
# Import all models to register with Base.metadata
import letterflow.db.models  # noqa: E402, F401
from letterflow.db.models import FileRow, TemplateReviewerRow, TemplateRow, UserRow  # noqa: E402
from letterflow.services.letter_access import LetterAccessService  # noqa: E402
from letterflow.services.letter_base import LetterDependencies  # noqa: E402
from letterflow.services.letter_creation import LetterCreationService  # noqa: E402
from letterflow.services.letter_workflow import LetterWorkflowService  # noqa: E402
from letterflow.services.pdf_manipulator import PdfManipulator  # noqa: E402

SUBMITTER = "usr_submitter"
R1 = "usr_r1"
R2 = "usr_r2"
R3 = "usr_r3"
APPROVER = "usr_approver"
OUTSIDER = "usr_outsider"

PAGE_WIDTH, PAGE_HEIGHT = LETTER_SIZE  # 612 x 792

SOURCE_KEY = "uploads/source.pdf"
REVISION_KEY = "uploads/revision.pdf"
SIGNATURE_KEY = "images/signature.png"
STAMP_KEY = "images/stamp.jpg"

PUBLIC_BASE_URL = "https://letters.example.com"


def make_pdf(pages: int = 2) -> bytes:
    buf = io.BytesIO()
    c = canvas.Canvas(buf, pagesize=LETTER_SIZE)
    for n in range(pages):
        c.drawString(72, 720, f"Page {n + 1}")
        c.showPage()
    c.save()
    return buf.getvalue()


def make_png(width: int = 200, height: int = 100) -> bytes:
    buf = io.BytesIO()
    Image.new("RGBA", (width, height), (20, 40, 160, 255)).save(buf, format="PNG")
    return buf.getvalue()


def make_jpeg(width: int = 100, height: int = 50) -> bytes:
    buf = io.BytesIO()
    Image.new("RGB", (width, height), (200, 30, 30)).save(buf, format="JPEG")
    return buf.getvalue()


class FakeDocumentStore(DocumentStore):
    """Dict-backed document store; ``fail_puts`` simulates an unavailable bucket."""

    def __init__(self):
        self.objects: dict[str, bytes] = {}
        self.mime_types: dict[str, str] = {}
        self.fail_puts = False

    async def get_buffer(self, key: str) -> bytes:
        if key not in self.objects:
            raise DocumentNotFoundError(key)
        return self.objects[key]

    async def put_buffer(self, data: bytes, key: str, mime_type: str) -> StoredDocument:
        if self.fail_puts:
            raise ConnectionError("storage unavailable")
        self.objects[key] = data
        self.mime_types[key] = mime_type
        return StoredDocument(key=key)

    async def signed_url(self, key: str, expires_in: int) -> str:
        if key not in self.objects:
            raise DocumentNotFoundError(key)
        return f"https://storage.test/{key}?expires={expires_in}"


class RecordingNotifier(NotificationDispatcher):
    def __init__(self):
        self.sent: list[tuple[str, str, dict]] = []

    async def notify(self, user_id, kind, payload):
        self.sent.append((user_id, kind, payload))

    def kinds_for(self, user_id: str) -> list[str]:
        return [kind for uid, kind, _ in self.sent if uid == user_id]


class FailingNotifier(NotificationDispatcher):
    async def notify(self, user_id, kind, payload):
        raise RuntimeError("mail server down")


@pytest.fixture
async def db_engine():
    """Create an in-memory SQLite async engine for testing."""
    engine = create_async_engine("sqlite+aiosqlite:///", echo=False, poolclass=StaticPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db_session(session_factory):
    """Create a test database session."""
    async with session_factory() as session:
        yield session


@pytest.fixture
async def seeded(session_factory):
    """Users, templates and an uploaded source file."""
    async with session_factory() as session:
        for user_id in (SUBMITTER, R1, R2, R3, APPROVER, OUTSIDER):
            session.add(UserRow(user_id=user_id, email=f"{user_id}@example.com", first_name=user_id[4:]))
        session.add(UserRow(user_id="usr_inactive", email="inactive@example.com", is_active=False))

        content = "Dear {{ recipient }},\n\nPlease find the agreed terms enclosed.\n\nRegards"
        session.add_all([
            TemplateRow(template_id="tpl_standard", owner_id=APPROVER, name="Standard", content=content),
            TemplateRow(template_id="tpl_owner_only", owner_id=APPROVER, name="Owner only", content=content),
            TemplateRow(template_id="tpl_unowned", owner_id=None, name="Unowned", content=content),
            TemplateRow(template_id="tpl_no_owner", owner_id=None, name="No owner", content=content),
            TemplateRow(template_id="tpl_self_owned", owner_id=SUBMITTER, name="Self owned", content=content),
            TemplateRow(template_id="tpl_self_owned_empty", owner_id=SUBMITTER, name="Self owned, empty", content=None),
            TemplateRow(template_id="tpl_empty", owner_id=APPROVER, name="Empty", content=None),
        ])
        session.add_all([
            TemplateReviewerRow(template_id="tpl_standard", user_id=R1, position=1),
            TemplateReviewerRow(template_id="tpl_standard", user_id=R2, position=2),
            TemplateReviewerRow(template_id="tpl_no_owner", user_id=R1, position=1),
            TemplateReviewerRow(template_id="tpl_self_owned", user_id=SUBMITTER, position=1),
            TemplateReviewerRow(template_id="tpl_self_owned", user_id=R1, position=2),
            TemplateReviewerRow(template_id="tpl_self_owned_empty", user_id=R1, position=1),
        ])
        session.add_all([
            FileRow(file_id="file_source", owner_id=SUBMITTER, name="source.pdf", path=SOURCE_KEY),
            FileRow(file_id="file_revision", owner_id=SUBMITTER, name="revision.pdf", path=REVISION_KEY),
        ])
        await session.commit()


@pytest.fixture
def pdf_bytes():
    return make_pdf()


@pytest.fixture
def store(pdf_bytes):
    s = FakeDocumentStore()
    s.objects[SOURCE_KEY] = pdf_bytes
    s.objects[REVISION_KEY] = make_pdf(pages=1)
    s.objects[SIGNATURE_KEY] = make_png()
    s.objects[STAMP_KEY] = make_jpeg()
    return s


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def deps(session_factory, store, notifier, seeded):
    return LetterDependencies(
        session_factory=session_factory,
        document_store=store,
        template_provider=SqlTemplateProvider(),
        user_directory=SqlUserDirectory(),
        notifier=notifier,
        activity_logger=SqlActivityLogger(),
        qr_encoder=QrCodeEncoder(),
        renderer=TemplatePdfRenderer(),
        pdf=PdfManipulator(ImageFetcher(store)),
        public_base_url=PUBLIC_BASE_URL,
    )


@pytest.fixture
def creation(deps):
    return LetterCreationService(deps)


@pytest.fixture
def workflow(deps):
    return LetterWorkflowService(deps)


@pytest.fixture
def access(deps):
    return LetterAccessService(deps)


@pytest.fixture
def app(db_engine, session_factory, deps):
    """Create a test application instance with in-memory DB and fake collaborators."""
    from letterflow.main import create_app

    _app = create_app(Settings(rate_limit_enabled=False, metrics_enabled=False))
    _app.state.db_engine = db_engine
    _app.state.db_session_factory = session_factory
    _app.state.letter_deps = deps
    return _app


@pytest.fixture
async def client(app):
    """Async HTTP test client."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


def token_for(user_id: str, **claims) -> str:
    payload = {
        "sub": user_id,
        "iss": settings.jwt_issuer,
        "aud": settings.jwt_audience,
        "exp": datetime.now(timezone.utc) + timedelta(minutes=15),
        **claims,
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def auth_headers(user_id: str) -> dict:
    return {"Authorization": f"Bearer {token_for(user_id)}"}
