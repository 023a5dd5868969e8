"""Document store implementations and image reference resolution."""

import io

import httpx
import pytest
from botocore.exceptions import ClientError

from letterflow.collaborators.base import DocumentNotFoundError
from letterflow.collaborators.images import ImageFetcher
from letterflow.collaborators.storage import LocalDocumentStore, S3DocumentStore, _normalize_endpoint


class FakeS3Client:
    def __init__(self):
        self.objects: dict[str, tuple[bytes, str]] = {}

    def get_object(self, Bucket, Key):
        if Key not in self.objects:
            raise ClientError({"Error": {"Code": "NoSuchKey", "Message": "missing"}}, "GetObject")
        return {"Body": io.BytesIO(self.objects[Key][0])}

    def put_object(self, Bucket, Key, Body, ContentType):
        if Bucket == "readonly":
            raise ClientError({"Error": {"Code": "AccessDenied", "Message": "denied"}}, "PutObject")
        self.objects[Key] = (Body, ContentType)

    def generate_presigned_url(self, operation, Params, ExpiresIn):
        return f"https://s3.test/{Params['Bucket']}/{Params['Key']}?X-Amz-Expires={ExpiresIn}"


@pytest.fixture
def local_store(tmp_path):
    return LocalDocumentStore(tmp_path, base_url="http://localhost:8080/local-storage/")


async def test_local_store_round_trip(local_store, tmp_path):
    stored = await local_store.put_buffer(b"%PDF-1.4", "letters/final/ltr_1.pdf", "application/pdf")
    assert stored.key == "letters/final/ltr_1.pdf"
    assert stored.public_url == "http://localhost:8080/local-storage/letters/final/ltr_1.pdf"
    assert (tmp_path / "letters" / "final" / "ltr_1.pdf").read_bytes() == b"%PDF-1.4"
    assert await local_store.get_buffer("letters/final/ltr_1.pdf") == b"%PDF-1.4"


async def test_local_store_missing_key(local_store):
    with pytest.raises(DocumentNotFoundError):
        await local_store.get_buffer("nope.pdf")
    with pytest.raises(DocumentNotFoundError):
        await local_store.signed_url("nope.pdf", 300)


async def test_local_store_signed_url(local_store):
    await local_store.put_buffer(b"x", "a.pdf", "application/pdf")
    assert await local_store.signed_url("a.pdf", 300) == "http://localhost:8080/local-storage/a.pdf?expires_in=300"


async def test_local_store_rejects_escaping_keys(local_store):
    with pytest.raises(ValueError):
        await local_store.put_buffer(b"x", "../outside.pdf", "application/pdf")


async def test_s3_store_round_trip():
    client = FakeS3Client()
    store = S3DocumentStore("letters", client=client)

    await store.put_buffer(b"data", "letters/qr/ltr_1.png", "image/png")
    assert client.objects["letters/qr/ltr_1.png"] == (b"data", "image/png")
    assert await store.get_buffer("letters/qr/ltr_1.png") == b"data"
    assert await store.signed_url("letters/qr/ltr_1.png", 300) == (
        "https://s3.test/letters/letters/qr/ltr_1.png?X-Amz-Expires=300"
    )


async def test_s3_missing_key_maps_to_document_not_found():
    store = S3DocumentStore("letters", client=FakeS3Client())
    with pytest.raises(DocumentNotFoundError):
        await store.get_buffer("missing.pdf")


async def test_s3_upload_failure_propagates():
    store = S3DocumentStore("readonly", client=FakeS3Client())
    with pytest.raises(ClientError):
        await store.put_buffer(b"x", "a.pdf", "application/pdf")


def test_normalize_endpoint():
    assert _normalize_endpoint("minio:9000") == "http://minio:9000"
    assert _normalize_endpoint("https://s3.example.com") == "https://s3.example.com"
    assert _normalize_endpoint(None) is None


async def test_image_fetcher_reads_store_keys(store):
    fetcher = ImageFetcher(store)
    assert await fetcher.fetch("images/signature.png") == store.objects["images/signature.png"]
    assert await fetcher.fetch("images/missing.png") is None


async def test_image_fetcher_downloads_urls(store):
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/sig.png":
            return httpx.Response(200, content=b"png-bytes")
        return httpx.Response(404)

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        fetcher = ImageFetcher(store, client=client)
        assert await fetcher.fetch("https://cdn.example.com/sig.png") == b"png-bytes"
        assert await fetcher.fetch("https://cdn.example.com/gone.png") is None
