import json

import httpx
import pytest
from botocore.exceptions import ClientError

from slideshow_service.clients.ffmpeg import EncoderError, EncoderResult, FfmpegEncoder, run_encoder
from slideshow_service.clients.products import SupabaseProductCatalog
from slideshow_service.clients.s3_storage import S3VideoPublisher
from slideshow_service.clients.supabase_storage import SupabaseVideoPublisher


def test_catalog_returns_nothing_when_unconfigured():
    assert SupabaseProductCatalog(api_url="", api_key="").list("owner", "cat") == []


def test_catalog_expands_product_media():
    requests = []

    def handler(request):
        requests.append(request)
        if request.url.path == "/rest/v1/products":
            return httpx.Response(
                200,
                json=[
                    {"id": 1, "preview_url": "https://ex.com/p1.jpg", "link": "https://ex.com/l1"},
                    {"id": 2, "preview_url": "https://ex.com/p2.jpg", "link": "https://ex.com/l2"},
                    {"id": 3, "preview_url": None, "link": "https://ex.com/l3.jpg"},
                ],
            )
        return httpx.Response(
            200,
            json=[
                {"product_id": 1, "preview_url": "https://ex.com/m1a.jpg", "sort_order": 0},
                {"product_id": 1, "preview_url": "https://ex.com/m1b.jpg", "sort_order": 1},
                {"product_id": 1, "preview_url": None, "sort_order": 2},
            ],
        )

    catalog = SupabaseProductCatalog(
        api_url="https://proj.supabase.co/",
        api_key="service-key",
        transport=httpx.MockTransport(handler),
    )
    products = catalog.list("owner-1", "cat-1")

    products_query = requests[0].url.params
    assert products_query["owner_id"] == "eq.owner-1"
    assert products_query["category_id"] == "eq.cat-1"
    assert products_query["order"] == "created_at.desc"
    assert requests[0].headers["apikey"] == "service-key"
    assert requests[1].url.path == "/rest/v1/product_media"
    assert requests[1].url.params["product_id"] == "in.(1,2,3)"

    assert [p.slide_urls() for p in products] == [
        ["https://ex.com/m1a.jpg", "https://ex.com/m1b.jpg"],
        ["https://ex.com/p2.jpg"],
        ["https://ex.com/l3.jpg"],
    ]
    assert products[0].preview_url == "https://ex.com/m1a.jpg"


def test_catalog_tolerates_missing_media_table():
    def handler(request):
        if request.url.path == "/rest/v1/products":
            return httpx.Response(200, json=[{"id": "a", "preview_url": "https://ex.com/a.jpg", "link": None}])
        return httpx.Response(404, json={"code": "PGRST205", "message": "table not found"})

    catalog = SupabaseProductCatalog("https://proj.supabase.co", "key", transport=httpx.MockTransport(handler))
    products = catalog.list("owner", "cat")
    assert [p.slide_urls() for p in products] == [["https://ex.com/a.jpg"]]


def test_catalog_query_errors_propagate():
    transport = httpx.MockTransport(lambda request: httpx.Response(500, json={"message": "db down"}))
    catalog = SupabaseProductCatalog("https://proj.supabase.co", "key", transport=transport)
    with pytest.raises(ValueError, match="Supabase query on products failed: 500"):
        catalog.list("owner", "cat")


class FakeS3Client:
    def __init__(self, error=None):
        self.uploads = []
        self.error = error

    def upload_file(self, filename, bucket, key, ExtraArgs=None):
        if self.error is not None:
            raise self.error
        self.uploads.append((filename, bucket, key, ExtraArgs))


def test_s3_publisher_uploads_under_folder(tmp_path):
    video = tmp_path / "vid_1.mp4"
    video.write_bytes(b"video")
    client = FakeS3Client()
    publisher = S3VideoPublisher(
        bucket="media",
        access_key="a",
        secret_key="s",
        public_url="https://cdn.example.com/",
        folder="/category-videos/",
        client=client,
    )

    published = publisher.upload(str(video))

    assert client.uploads == [(str(video), "media", "category-videos/vid_1.mp4", {"ContentType": "video/mp4"})]
    assert published.url == "https://cdn.example.com/category-videos/vid_1.mp4"
    assert published.remote_id == "category-videos/vid_1.mp4"


def test_s3_publisher_wraps_client_errors(tmp_path):
    video = tmp_path / "vid_2.mp4"
    video.write_bytes(b"video")
    error = ClientError({"Error": {"Code": "AccessDenied", "Message": "denied"}}, "PutObject")
    publisher = S3VideoPublisher(bucket="media", access_key="a", secret_key="s", client=FakeS3Client(error))

    with pytest.raises(ValueError, match="S3 upload failed"):
        publisher.upload(str(video))


def test_s3_publisher_requires_configuration(tmp_path):
    publisher = S3VideoPublisher(bucket="media", access_key="", secret_key="")
    assert not publisher.is_configured()
    with pytest.raises(RuntimeError, match="not configured"):
        publisher.upload(str(tmp_path / "x.mp4"))


def test_supabase_publisher_posts_file(tmp_path):
    video = tmp_path / "vid_3.mp4"
    video.write_bytes(b"video-bytes")
    seen = {}

    def handler(request):
        seen["url"] = str(request.url)
        seen["body"] = request.read()
        seen["content_type"] = request.headers["content-type"]
        return httpx.Response(200, content=json.dumps({"Key": "videos/category-videos/vid_3.mp4"}))

    publisher = SupabaseVideoPublisher(
        api_url="https://proj.supabase.co",
        public_url=None,
        bucket="videos",
        api_key="key",
        transport=httpx.MockTransport(handler),
    )
    published = publisher.upload(str(video))

    assert seen["url"] == "https://proj.supabase.co/storage/v1/object/videos/category-videos/vid_3.mp4"
    assert seen["body"] == b"video-bytes"
    assert seen["content_type"] == "video/mp4"
    assert published.url == "https://proj.supabase.co/storage/v1/object/public/videos/category-videos/vid_3.mp4"
    assert published.remote_id == "category-videos/vid_3.mp4"


def test_supabase_publisher_rejects_failed_upload(tmp_path):
    video = tmp_path / "vid_4.mp4"
    video.write_bytes(b"video")
    publisher = SupabaseVideoPublisher(
        api_url="https://proj.supabase.co",
        public_url=None,
        bucket="videos",
        api_key="key",
        transport=httpx.MockTransport(lambda request: httpx.Response(403, text="forbidden")),
    )
    with pytest.raises(ValueError, match="Supabase upload failed: 403 forbidden"):
        publisher.upload(str(video))


def test_run_encoder_passes_on_zero_exit():
    class OkEncoder:
        def run(self, args):
            return EncoderResult(returncode=0)

    run_encoder(OkEncoder(), ["-y", "out.mp4"])


def test_ffmpeg_encoder_reports_missing_binary():
    encoder = FfmpegEncoder(binary="/nonexistent/ffmpeg-binary")
    with pytest.raises(EncoderError, match="could not be started"):
        encoder.run(["-version"])
