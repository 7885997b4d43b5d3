import pandas as pd
import pytest

from fractalgen.config import UploadConfig
from fractalgen.upload import (
    LEDGER_COLUMNS,
    Ledger,
    LedgerEntry,
    SpacesSink,
    UploadError,
    content_type_for,
    upload,
    upload_folder,
)


class MemorySink:
    def __init__(self, fail_on=()):
        self.objects = {}
        self.fail_on = set(fail_on)

    def put(self, key, data, content_type):
        if key in self.fail_on:
            raise ConnectionError(f"refused {key}")
        self.objects[key] = (data, content_type)


class RecordingClient:
    def __init__(self):
        self.calls = []

    def put_object(self, **kwargs):
        self.calls.append(kwargs)


@pytest.fixture
def image_dir(tmp_path):
    folder = tmp_path / "images"
    (folder / "sub").mkdir(parents=True)
    (folder / "mandelbrot_0.png").write_bytes(b"png" * 400)
    (folder / "sub" / "photo.JPG").write_bytes(b"jpg")
    (folder / "notes.bin").write_bytes(b"\x00\x01")
    return folder


@pytest.mark.parametrize(
    "name, expected",
    [
        ("a.png", "image/png"),
        ("a.jpeg", "image/jpeg"),
        ("a.JPG", "image/jpeg"),
        ("a.gif", "image/gif"),
        ("a.webp", "image/webp"),
        ("a.bin", "application/octet-stream"),
        ("noext", "application/octet-stream"),
    ],
)
def test_content_type_for(name, expected):
    assert content_type_for(name) == expected


def test_upload_folder_uses_prefixed_posix_keys(image_dir):
    sink = MemorySink()

    uploaded, failures = upload_folder(image_dir, sink, "fractals/")

    assert failures == {}
    assert len(uploaded) == 3
    assert sink.objects == {
        "fractals/mandelbrot_0.png": (b"png" * 400, "image/png"),
        "fractals/sub/photo.JPG": (b"jpg", "image/jpeg"),
        "fractals/notes.bin": (b"\x00\x01", "application/octet-stream"),
    }


def test_upload_folder_continues_after_failure(image_dir):
    sink = MemorySink(fail_on={"notes.bin"})

    uploaded, failures = upload_folder(image_dir, sink)

    assert list(failures) == ["notes.bin"]
    assert isinstance(failures["notes.bin"], ConnectionError)
    assert sorted(p.name for p in uploaded) == ["mandelbrot_0.png", "photo.JPG"]


def test_spaces_sink_puts_public_objects():
    client = RecordingClient()
    sink = SpacesSink(UploadConfig(bucket="bucket", region="ams3"), client=client)

    sink.put("fractals/a.png", b"data", "image/png")

    assert client.calls == [
        {
            "Bucket": "bucket",
            "Key": "fractals/a.png",
            "Body": b"data",
            "ACL": "public-read",
            "ContentType": "image/png",
        }
    ]


def test_upload_config_urls():
    config = UploadConfig(bucket="benchmarkap", region="lon1", prefix="fractals/")
    assert config.endpoint_url == "https://lon1.digitaloceanspaces.com"
    assert config.origin_url("a.png") == "https://benchmarkap.lon1.digitaloceanspaces.com/fractals/a.png"
    assert config.cdn_url("a.png") == "https://benchmarkap.lon1.cdn.digitaloceanspaces.com/fractals/a.png"


def _entry(name):
    return LedgerEntry(cdn_url=f"cdn/{name}", origin_url=f"origin/{name}", file_name=name, file_size_kib="1.00")


def test_ledger_skips_duplicate_file_names(tmp_path):
    ledger = Ledger(tmp_path / "data" / "urls.csv")

    assert ledger.upsert([_entry("a.png"), _entry("b.png")]) == [_entry("a.png"), _entry("b.png")]
    replacement = LedgerEntry(cdn_url="other", origin_url="other", file_name="a.png", file_size_kib="9.00")
    assert ledger.upsert([replacement, _entry("c.png")]) == [_entry("c.png")]

    assert ledger.load() == [_entry("a.png"), _entry("b.png"), _entry("c.png")]
    assert pd.read_csv(ledger.path).columns.tolist() == list(LEDGER_COLUMNS)


def test_ledger_reads_legacy_rows(tmp_path):
    path = tmp_path / "urls.csv"
    path.write_text("cdn_url,origin_url\nhttps://cdn/x.png,https://origin/x.png\nonly-one\n")

    entries = Ledger(path).load()

    assert entries == [
        LedgerEntry("https://cdn/x.png", "https://origin/x.png", "", ""),
        LedgerEntry("only-one", "", "", ""),
    ]


def test_upload_records_uploaded_files(image_dir, tmp_path):
    config = UploadConfig(bucket="b", region="r", prefix="p/", source_dir=image_dir, ledger_path=tmp_path / "urls.csv")
    sink = MemorySink()

    added = upload(config, sink)

    by_name = {entry.file_name: entry for entry in added}
    assert set(by_name) == {"mandelbrot_0.png", "sub/photo.JPG", "notes.bin"}
    assert by_name["sub/photo.JPG"].cdn_url == "https://b.r.cdn.digitaloceanspaces.com/p/sub/photo.JPG"
    assert by_name["sub/photo.JPG"].origin_url == "https://b.r.digitaloceanspaces.com/p/sub/photo.JPG"
    assert by_name["mandelbrot_0.png"].file_size_kib == "1.17"

    assert upload(config, sink) == []
    assert len(Ledger(config.ledger_path).load()) == 3


def test_upload_raises_after_recording_successes(image_dir, tmp_path):
    config = UploadConfig(prefix="", source_dir=image_dir, ledger_path=tmp_path / "urls.csv")

    with pytest.raises(UploadError) as excinfo:
        upload(config, MemorySink(fail_on={"notes.bin"}))

    assert list(excinfo.value.failures) == ["notes.bin"]
    names = {entry.file_name for entry in Ledger(config.ledger_path).load()}
    assert names == {"mandelbrot_0.png", "sub/photo.JPG"}


def test_upload_missing_folder_is_a_no_op(tmp_path):
    config = UploadConfig(source_dir=tmp_path / "absent", ledger_path=tmp_path / "urls.csv")
    assert upload(config, MemorySink()) == []
    assert not config.ledger_path.exists()


def test_upload_keeps_equal_basenames_in_different_folders(tmp_path):
    folder = tmp_path / "images"
    for sub in ("a", "b"):
        (folder / sub).mkdir(parents=True)
        (folder / sub / "x.png").write_bytes(sub.encode())
    config = UploadConfig(source_dir=folder, ledger_path=tmp_path / "urls.csv")

    upload(config, MemorySink())

    rows = Ledger(config.ledger_path).load()
    assert [entry.file_name for entry in rows] == ["a/x.png", "b/x.png"]
    assert [entry.origin_url for entry in rows] == [
        "https://benchmarkap.lon1.digitaloceanspaces.com/fractals/a/x.png",
        "https://benchmarkap.lon1.digitaloceanspaces.com/fractals/b/x.png",
    ]
