import json
import os
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional

import aiofiles
import aiofiles.os
from fastapi import UploadFile
from pydantic import ValidationError as PydanticValidationError

import config
from app.errors import ConflictError, InternalError, MissingBlobError, NotFoundError, PayloadTooLargeError
from app.models.image import ImageRecord
from logger_config import get_logger

logger = get_logger()


def is_valid_id(image_id: Optional[str]) -> bool:
    """Check the identifier charset and length."""
    if not image_id or len(image_id) > config.MAX_ID_LENGTH:
        return False
    return config.ID_PATTERN.fullmatch(image_id) is not None


def generate_id() -> str:
    return uuid.uuid4().hex


def blob_filename(image_id: str, original_name: str) -> str:
    """<id> followed by the lowercased extension of the client filename."""
    _, ext = os.path.splitext(original_name or "")
    ext = ext.lower()
    # Unusual extensions are dropped; .json would collide with the metadata file
    if not config.EXTENSION_PATTERN.fullmatch(ext) or ext == ".json":
        ext = ""
    return f"{image_id}{ext}"


class ImageStore:
    """Metadata records (<id>.json) and blobs (<id><ext>) kept side by side in one directory.

    Creating a record is a three step sequence: claim() exclusively creates a
    pending metadata file, the upload is streamed into the temp directory, and
    commit() renames the blob into place before replacing the metadata with
    the committed version. Readers never see pending records, and
    initialize() removes any left behind by a crash.
    """

    def __init__(self, upload_dir: Path, temp_dir: Path, max_upload_size: int):
        self.upload_dir = Path(upload_dir)
        self.temp_dir = Path(temp_dir)
        self.max_upload_size = max_upload_size

    async def initialize(self):
        """Create directories, empty the temp directory and drop stale pending records."""
        logger.info("Initializing image store...")

        self.upload_dir.mkdir(exist_ok=True, parents=True)
        self.temp_dir.mkdir(exist_ok=True, parents=True)
        logger.debug(f"Storage directories created/verified: {self.upload_dir}, {self.temp_dir}")

        files_removed = 0
        for file in self.temp_dir.glob("*"):
            if file.is_file():
                await aiofiles.os.unlink(file)
                files_removed += 1
        logger.info(f"Cleaned temporary directory, removed {files_removed} files")

        reconciled = await self.reconcile()
        logger.info(f"Image store ready: {self.upload_dir} ({reconciled} stale uploads removed)")

    async def reconcile(self) -> int:
        """Remove pending records (and their blobs) left over from interrupted uploads."""
        removed = 0
        for metadata_path in self.upload_dir.glob("*.json"):
            record = await self._read_record(metadata_path)
            if record is None or not record.pending:
                continue
            logger.warning(f"Removing interrupted upload {record.id}")
            await self._unlink_if_exists(self.blob_path(record))
            await self._unlink_if_exists(metadata_path)
            removed += 1

        known_ids = {p.stem for p in self.upload_dir.glob("*.json")}
        for path in self.upload_dir.iterdir():
            if path.is_file() and path.suffix != ".json" and path.name.partition(".")[0] not in known_ids:
                logger.warning(f"Orphaned blob without metadata: {path.name}")
        return removed

    def metadata_path(self, image_id: str) -> Path:
        return self.upload_dir / f"{image_id}.json"

    def blob_path(self, record: ImageRecord) -> Path:
        return self.upload_dir / record.filename

    def new_temp_path(self, suffix: str = "") -> Path:
        return self.temp_dir / f"tmp-{uuid.uuid4().hex}{suffix}"

    async def claim(self, image_id: str, original_name: str) -> ImageRecord:
        """Atomically reserve an identifier by exclusively creating its metadata file."""
        record = ImageRecord(
            id=image_id,
            filename=blob_filename(image_id, original_name),
            original_name=original_name,
            uploaded_at=datetime.now(timezone.utc),
            pending=True,
        )
        try:
            async with aiofiles.open(self.metadata_path(image_id), 'x') as f:
                await f.write(record.to_json())
        except FileExistsError:
            raise ConflictError()
        logger.debug(f"Claimed identifier {image_id}")
        return record

    async def save_temp(self, file: UploadFile, suffix: str = "") -> Path:
        """Stream an upload into the temp directory, enforcing the size limit."""
        temp_path = self.new_temp_path(suffix)
        size = 0
        try:
            async with aiofiles.open(temp_path, 'wb') as f:
                while chunk := await file.read(config.CHUNK_SIZE):
                    size += len(chunk)
                    if size > self.max_upload_size:
                        raise PayloadTooLargeError(f"File too large (max {self.max_upload_size} bytes)")
                    await f.write(chunk)
        except Exception:
            await self._unlink_if_exists(temp_path)
            raise
        logger.debug(f"Stored {size} bytes in {temp_path.name}")
        return temp_path

    async def commit(self, record: ImageRecord, temp_path: Path) -> ImageRecord:
        """Move the blob into place, then publish the metadata."""
        await aiofiles.os.rename(temp_path, self.blob_path(record))

        committed = record.model_copy(update={"pending": False})
        await self._write_record(committed)
        return committed

    async def abort(self, record: ImageRecord, temp_path: Optional[Path] = None):
        """Release a pending claim after a failed upload."""
        if temp_path is not None:
            await self._unlink_if_exists(temp_path)
        await self._unlink_if_exists(self.blob_path(record))
        await self._unlink_if_exists(self.metadata_path(record.id))
        logger.debug(f"Released identifier {record.id}")

    async def get(self, image_id: str) -> ImageRecord:
        """Return the committed record for an identifier or raise NotFoundError."""
        if not is_valid_id(image_id):
            raise NotFoundError()
        record = await self._read_record(self.metadata_path(image_id))
        if record is None or record.pending:
            raise NotFoundError()
        return record

    async def get_blob_path(self, record: ImageRecord) -> Path:
        blob_path = self.blob_path(record)
        if not await aiofiles.os.path.isfile(blob_path):
            raise MissingBlobError()
        return blob_path

    async def list_records(self) -> List[ImageRecord]:
        """All committed records, newest first."""
        records = []
        for name in await aiofiles.os.listdir(self.upload_dir):
            if not name.endswith(".json"):
                continue
            record = await self._read_record(self.upload_dir / name)
            if record is not None and not record.pending:
                records.append(record)
        records.sort(key=lambda r: r.uploaded_at, reverse=True)
        return records

    async def delete(self, image_id: str):
        """Remove the blob, then the metadata. Either may already be gone.

        A metadata file that cannot be parsed is still deleted, together with
        any blob named after the identifier.
        """
        if not is_valid_id(image_id):
            raise NotFoundError()
        metadata_path = self.metadata_path(image_id)
        if not await aiofiles.os.path.exists(metadata_path):
            raise NotFoundError()

        record = await self._read_record(metadata_path)
        if record is not None and record.pending:
            raise NotFoundError()
        if record is not None:
            blob_paths = [self.blob_path(record)]
        else:
            blob_paths = self._blob_candidates(image_id)

        try:
            for blob_path in blob_paths:
                await self._unlink_if_exists(blob_path)
            await self._unlink_if_exists(self.metadata_path(image_id))
        except OSError as e:
            logger.error(f"Error deleting image {image_id}: {str(e)}", exc_info=True)
            raise InternalError("Failed to delete")

    def _blob_candidates(self, image_id: str) -> List[Path]:
        return [
            p for p in self.upload_dir.iterdir()
            if p.is_file() and p.suffix != ".json" and p.name.partition(".")[0] == image_id
        ]

    async def _read_record(self, metadata_path: Path) -> Optional[ImageRecord]:
        try:
            async with aiofiles.open(metadata_path, 'r') as f:
                content = await f.read()
        except FileNotFoundError:
            return None
        try:
            return ImageRecord.model_validate(json.loads(content))
        except (json.JSONDecodeError, PydanticValidationError):
            logger.warning(f"Skipping unreadable metadata file {metadata_path.name}")
            return None

    async def _write_record(self, record: ImageRecord):
        # Write beside the target and swap in, so readers never see a partial file
        temp_path = self.new_temp_path(".json")
        async with aiofiles.open(temp_path, 'w') as f:
            await f.write(record.to_json())
        await aiofiles.os.replace(temp_path, self.metadata_path(record.id))

    @staticmethod
    async def _unlink_if_exists(path: Path):
        try:
            await aiofiles.os.unlink(path)
        except FileNotFoundError:
            pass
