"""
Staging of multipart uploads to a scratch directory.

Uploads are parsed straight off the request stream with python-multipart.
File parts are written to disk chunk by chunk and the per-file ceiling is
checked on every chunk, so an oversized file is rejected before the rest of
the request body is read. Parser callbacks only queue file operations; the
queue is flushed in a worker thread after each chunk so disk I/O never
blocks the event loop.
"""

import asyncio
import os
import time
import uuid
from dataclasses import dataclass, field
from pathlib import Path
from typing import AsyncIterator, BinaryIO, Dict, Iterable, List, Optional, Tuple

from python_multipart.exceptions import FormParserError
from python_multipart.multipart import MultipartParser, parse_options_header

from wa_gateway.errors import InvalidRequest, PayloadTooLarge
from wa_gateway.logging import setup_logger

logger = setup_logger(__name__)


@dataclass
class StagedFile:
    original_name: str
    stored_path: Path
    size_bytes: int = 0


@dataclass
class StagedUpload:
    """Text fields and staged files of one multipart request."""

    fields: Dict[str, str] = field(default_factory=dict)
    files: List[StagedFile] = field(default_factory=list)


class _PartReader:
    """Collects python-multipart callbacks for one request into a StagedUpload."""

    def __init__(self, staging: "UploadStaging"):
        self.staging = staging
        self.upload = StagedUpload()
        self.finished = False
        self._header_name = b""
        self._header_value = b""
        self._disposition = b""
        self._field_name: Optional[str] = None
        self._field_data = bytearray()
        self._file: Optional[StagedFile] = None
        self._handle: Optional[BinaryIO] = None
        self._pending: List[Tuple[str, StagedFile, bytes]] = []
        self._skip = False

    def callbacks(self) -> dict:
        return {
            "on_part_begin": self.on_part_begin,
            "on_part_data": self.on_part_data,
            "on_part_end": self.on_part_end,
            "on_header_field": self.on_header_field,
            "on_header_value": self.on_header_value,
            "on_header_end": self.on_header_end,
            "on_headers_finished": self.on_headers_finished,
            "on_end": self.on_end,
        }

    def on_part_begin(self) -> None:
        self._disposition = b""
        self._field_name = None
        self._field_data = bytearray()
        self._file = None
        self._skip = False

    def on_header_field(self, data: bytes, start: int, end: int) -> None:
        self._header_name += data[start:end]

    def on_header_value(self, data: bytes, start: int, end: int) -> None:
        self._header_value += data[start:end]

    def on_header_end(self) -> None:
        if self._header_name.lower() == b"content-disposition":
            self._disposition = self._header_value
        self._header_name = b""
        self._header_value = b""

    def on_headers_finished(self) -> None:
        _, options = parse_options_header(self._disposition)
        if b"name" not in options:
            raise InvalidRequest("Multipart part is missing a field name")
        self._field_name = options[b"name"].decode("utf-8", errors="replace")

        if b"filename" not in options:
            return

        filename = options[b"filename"].decode("utf-8", errors="replace")
        if not filename:
            # Empty file input
            self._skip = True
            return
        if self._field_name != self.staging.field_name:
            raise InvalidRequest(f"Unexpected file field: {self._field_name}")

        self._file = self.staging.new_file(filename)
        self.upload.files.append(self._file)
        self._pending.append(("open", self._file, b""))

    def on_part_data(self, data: bytes, start: int, end: int) -> None:
        if self._skip:
            return
        chunk = data[start:end]
        if self._file is None:
            if len(self._field_data) + len(chunk) > self.staging.max_field_size:
                raise InvalidRequest(f"Field too large: {self._field_name}")
            self._field_data.extend(chunk)
            return

        self._file.size_bytes += len(chunk)
        if self._file.size_bytes > self.staging.max_file_size:
            raise PayloadTooLarge(
                f"File too large (max {self.staging.max_file_size // (1024 * 1024)} MB)"
            )
        self._pending.append(("write", self._file, chunk))

    def on_part_end(self) -> None:
        if self._file is not None:
            self._pending.append(("close", self._file, b""))
        elif not self._skip and self._field_name is not None:
            self.upload.fields[self._field_name] = self._field_data.decode(
                "utf-8", errors="replace"
            )

    def on_end(self) -> None:
        self.finished = True

    async def flush(self) -> None:
        """Run the file operations queued by the callbacks, in order."""
        pending, self._pending = self._pending, []
        for op, staged, chunk in pending:
            if op == "open":
                self._handle = await asyncio.to_thread(open, staged.stored_path, "wb")
            elif op == "write":
                await asyncio.to_thread(self._handle.write, chunk)
            else:
                handle, self._handle = self._handle, None
                await asyncio.to_thread(handle.close)

    def close(self) -> None:
        self._pending.clear()
        if self._handle is not None:
            self._handle.close()
            self._handle = None


class UploadStaging:
    """
    Persists uploaded files under unique names in a scratch directory and
    removes them once they have been forwarded.
    """

    def __init__(
        self,
        upload_dir,
        max_file_size: int,
        max_field_size: int = 1024 * 1024,
        field_name: str = "file[]",
    ):
        self.upload_dir = Path(upload_dir)
        self.max_file_size = max_file_size
        self.max_field_size = max_field_size
        self.field_name = field_name

    def prepare(self) -> None:
        self.upload_dir.mkdir(parents=True, exist_ok=True)
        logger.info(f"Upload directory ready: {self.upload_dir}")

    def new_file(self, original_name: str) -> StagedFile:
        # Browsers may send full client-side paths
        basename = os.path.basename(original_name.replace("\\", "/")) or "upload"
        unique_name = f"{int(time.time() * 1000)}-{uuid.uuid4().hex[:8]}-{basename}"
        return StagedFile(original_name=original_name, stored_path=self.upload_dir / unique_name)

    async def stage(self, content_type: Optional[str], stream: AsyncIterator[bytes]) -> StagedUpload:
        """
        Parse a multipart/form-data body from ``stream`` and stage its files.

        Raises:
            InvalidRequest: the body is not well-formed multipart/form-data
            PayloadTooLarge: a file exceeded ``max_file_size``; the stream is
                not read any further
        """
        media_type, params = parse_options_header(content_type or "")
        if media_type != b"multipart/form-data":
            raise InvalidRequest("Expected a multipart/form-data body")
        boundary = params.get(b"boundary")
        if not boundary:
            raise InvalidRequest("Missing boundary in multipart body")

        reader = _PartReader(self)
        parser = MultipartParser(boundary, reader.callbacks())
        try:
            async for chunk in stream:
                parser.write(chunk)
                await reader.flush()
            parser.finalize()
            await reader.flush()
            if not reader.finished:
                raise InvalidRequest("Incomplete multipart body")
        except FormParserError as e:
            reader.close()
            self.release_all(reader.upload.files)
            raise InvalidRequest("Invalid multipart body") from e
        except BaseException:
            reader.close()
            self.release_all(reader.upload.files)
            raise

        logger.debug(
            f"Staged {len(reader.upload.files)} file(s) in {self.upload_dir}"
        )
        return reader.upload

    def release(self, staged: StagedFile) -> None:
        """Delete a staged file. Failures are logged and never raised."""
        try:
            staged.stored_path.unlink(missing_ok=True)
        except OSError as e:
            logger.warning(f"Could not delete staged file {staged.stored_path}: {e}")

    def release_all(self, files: Iterable[StagedFile]) -> None:
        for staged in files:
            self.release(staged)
