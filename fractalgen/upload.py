"""Object-store upload and the CSV manifest of uploaded files."""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Optional, Protocol

import boto3
import pandas as pd

from .config import UploadConfig

logger = logging.getLogger(__name__)

_CONTENT_TYPES = {
    "png": "image/png",
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "gif": "image/gif",
    "webp": "image/webp",
}
DEFAULT_CONTENT_TYPE = "application/octet-stream"

LEDGER_COLUMNS = ("cdn_url", "origin_url", "file_name", "file_size_kib")


class UploadError(RuntimeError):
    def __init__(self, failures: dict[str, Exception]) -> None:
        super().__init__(f"{len(failures)} uploads failed: {', '.join(sorted(failures))}")
        self.failures = failures


class BlobSink(Protocol):
    def put(self, key: str, data: bytes, content_type: str) -> None: ...


def content_type_for(path: Path) -> str:
    return _CONTENT_TYPES.get(Path(path).suffix.lower().lstrip("."), DEFAULT_CONTENT_TYPE)


class SpacesSink:
    """S3-compatible sink for a DigitalOcean Spaces bucket.

    Credentials are read by boto3 from ``AWS_ACCESS_KEY_ID`` and
    ``AWS_SECRET_ACCESS_KEY``.
    """

    def __init__(self, config: UploadConfig, client=None) -> None:
        self.bucket = config.bucket
        self.acl = config.acl
        self.client = client if client is not None else boto3.client(
            "s3",
            region_name=config.region,
            endpoint_url=config.endpoint_url,
        )

    def put(self, key: str, data: bytes, content_type: str) -> None:
        self.client.put_object(
            Bucket=self.bucket,
            Key=key,
            Body=data,
            ACL=self.acl,
            ContentType=content_type,
        )


def iter_files(folder: Path) -> list[Path]:
    return sorted(path for path in Path(folder).rglob("*") if path.is_file())


def object_key(folder: Path, path: Path, prefix: Optional[str]) -> str:
    relative = Path(path).relative_to(folder).as_posix()
    return f"{prefix or ''}{relative}"


def upload_folder(
    folder: Path,
    sink: BlobSink,
    prefix: Optional[str] = None,
    *,
    max_workers: int = 8,
) -> tuple[list[Path], dict[str, Exception]]:
    """Upload every file under ``folder``.

    Returns the uploaded paths and a mapping of failed keys to errors. A
    failed upload does not stop the others.
    """

    folder = Path(folder)
    files = iter_files(folder)
    logger.info("Starting upload of folder: %s (%d files)", folder, len(files))

    def put_one(path: Path) -> Path:
        key = object_key(folder, path, prefix)
        logger.info("Uploading file %s to key %s", path, key)
        sink.put(key, path.read_bytes(), content_type_for(path))
        logger.info("Successfully uploaded: %s", key)
        return path

    uploaded: list[Path] = []
    failures: dict[str, Exception] = {}
    with ThreadPoolExecutor(max_workers=max(1, max_workers)) as executor:
        futures = {executor.submit(put_one, path): path for path in files}
        for future, path in futures.items():
            try:
                uploaded.append(future.result())
            except Exception as exc:
                key = object_key(folder, path, prefix)
                logger.error("Failed to upload %s: %s", key, exc)
                failures[key] = exc

    logger.info("Folder upload complete: %d uploaded, %d failed", len(uploaded), len(failures))
    return uploaded, failures


@dataclass(frozen=True)
class LedgerEntry:
    cdn_url: str
    origin_url: str
    file_name: str
    file_size_kib: str

    def as_row(self) -> list[str]:
        return [self.cdn_url, self.origin_url, self.file_name, self.file_size_kib]


def file_size_kib(path: Path) -> str:
    try:
        return f"{Path(path).stat().st_size / 1024.0:.2f}"
    except OSError:
        logger.warning("Could not get metadata for file: %s", path)
        return ""


class Ledger:
    """Append-only CSV manifest keyed by file name.

    ``upload`` records the path relative to the uploaded folder as the file
    name, so equal basenames in different subfolders stay distinct.
    """

    def __init__(self, path: Path) -> None:
        self.path = Path(path)

    def load(self) -> list[LedgerEntry]:
        if not self.path.exists() or self.path.stat().st_size == 0:
            return []
        logger.info("Reading existing CSV file: %s", self.path)
        # Read positionally; older manifests carry only the first one or two columns.
        df = pd.read_csv(
            self.path,
            header=None,
            skiprows=1,
            names=list(LEDGER_COLUMNS),
            dtype=str,
            keep_default_na=False,
        ).fillna("")
        entries = [LedgerEntry(*row) for row in df.itertuples(index=False, name=None)]
        logger.info("Loaded %d existing rows from CSV.", len(entries))
        return entries

    def upsert(self, new_entries: Iterable[LedgerEntry]) -> list[LedgerEntry]:
        """Add entries whose file name is not yet recorded; return the added ones."""

        entries = self.load()
        known = {entry.file_name for entry in entries}
        added = []
        for entry in new_entries:
            if entry.file_name in known:
                logger.info("Skipping duplicate file in CSV: %s", entry.file_name)
                continue
            logger.info("Appending new row to CSV: %s", entry)
            entries.append(entry)
            added.append(entry)
            known.add(entry.file_name)

        self.path.parent.mkdir(parents=True, exist_ok=True)
        logger.info("Writing %d rows to CSV file: %s", len(entries), self.path)
        df = pd.DataFrame([entry.as_row() for entry in entries], columns=list(LEDGER_COLUMNS))
        df.to_csv(self.path, index=False)
        return added


def upload(config: UploadConfig, sink: Optional[BlobSink] = None) -> list[LedgerEntry]:
    """Upload ``config.source_dir`` and record the uploaded files in the ledger.

    Raises ``UploadError`` after the ledger is written if any upload failed.
    """

    folder = config.source_dir
    if not folder.exists():
        logger.warning("No images to upload: %s does not exist.", folder)
        return []

    sink = sink if sink is not None else SpacesSink(config)
    logger.info("Uploading folder %s to bucket %s/%s with prefix %r", folder, config.bucket, config.region, config.prefix)
    uploaded, failures = upload_folder(folder, sink, config.prefix)

    entries = []
    for path in uploaded:
        relative = path.relative_to(folder).as_posix()
        entries.append(
            LedgerEntry(
                cdn_url=config.cdn_url(relative),
                origin_url=config.origin_url(relative),
                file_name=relative,
                file_size_kib=file_size_kib(path),
            )
        )
    added = Ledger(config.ledger_path).upsert(entries)

    if failures:
        raise UploadError(failures)
    return added
