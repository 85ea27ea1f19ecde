"""
sim_import/transfer.py
-----------------------------------------------------------------------------
Transfer engine: chunked upload of payload files, optionally zipped first.

Sections
--------
1. **Chunking** — split a binary stream into policy-sized chunks.
2. **Single-file upload** — one ``mode=file`` request per chunk.
3. **Archive packaging** — bundle every payload into one temporary zip.
4. **Upload all** — pick individual or archive upload from the policy.

Uploads are not resumable: if the server rejects a chunk the file stays
partially transferred on the server and the run aborts.
"""

from __future__ import annotations

import logging
import os
import tempfile
import zipfile
from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from pathlib import Path
from typing import BinaryIO

from sim_import.errors import FileAccessError, TransferError
from sim_import.schema import FileJob, Status, TransferPolicy
from sim_import.session import ExchangeChannel

logger = logging.getLogger(__name__)

ARCHIVE_PREFIX: str = "sim_import_"
ARCHIVE_SUFFIX: str = ".zip"


# ---------------------------------------------------------------------------
# Section 1: Chunking
# ---------------------------------------------------------------------------


def iter_chunks(stream: BinaryIO, chunk_size: int) -> Iterator[bytes]:
    """
    Yield successive chunks of at most ``chunk_size`` bytes.

    A stream of N > 0 bytes yields ceil(N / chunk_size) chunks with no
    trailing empty chunk.  An empty stream yields exactly one empty chunk,
    because the server only learns about a file through a ``file`` request.
    """
    if chunk_size <= 0:
        raise ValueError(f"chunk_size must be positive, got {chunk_size}")

    sent_any = False
    while True:
        chunk = stream.read(chunk_size)
        if not chunk and sent_any:
            return
        sent_any = True
        yield chunk
        if not chunk:
            return


# ---------------------------------------------------------------------------
# Section 2: Single-file upload
# ---------------------------------------------------------------------------


def upload_single_file(channel: ExchangeChannel, job: FileJob, policy: TransferPolicy) -> int:
    """
    Upload one file as a sequence of ``mode=file`` requests.

    Parameters
    ----------
    channel : Authenticated channel.
    job     : File to send and the name the server stores it under.
    policy  : Supplies the chunk size.

    Returns
    -------
    int : Total number of bytes sent.

    Raises
    ------
    FileAccessError
        If the source file cannot be opened.
    TransferError
        On the first chunk the server does not acknowledge with ``success``.
        No further chunks of the file are sent.
    """
    try:
        stream = open(job.source_path, "rb")
    except OSError as exc:
        raise FileAccessError(f"Cannot open file \"{job.source_path}\": {exc.strerror}") from exc

    sent = 0
    with stream:
        for index, chunk in enumerate(iter_chunks(stream, policy.chunk_size), start=1):
            response = channel.send(
                "file",
                params={"filename": job.server_name},
                content=chunk,
            )
            if response.status is not Status.SUCCESS:
                raise TransferError(
                    response.message or f"Upload of \"{job.server_name}\" was rejected."
                )
            sent += len(chunk)
            logger.debug("%s: chunk %d sent (%d bytes total)", job.server_name, index, sent)

    logger.info("Uploaded %s (%d bytes)", job.server_name, sent)
    return sent


# ---------------------------------------------------------------------------
# Section 3: Archive packaging
# ---------------------------------------------------------------------------


def build_archive(paths: Sequence[Path], destination: Path) -> None:
    """
    Write a deflated zip at ``destination`` containing every file in ``paths``.

    Entries are stored under their base names only, so no local directory
    structure leaks to the server.

    Raises
    ------
    FileAccessError
        If a source file cannot be read.
    """
    with zipfile.ZipFile(destination, mode="w", compression=zipfile.ZIP_DEFLATED) as zf:
        for path in paths:
            try:
                zf.write(path, arcname=Path(path).name)
            except OSError as exc:
                raise FileAccessError(f"Cannot read file \"{path}\": {exc.strerror}") from exc


@contextmanager
def packaged_archive(jobs: Sequence[FileJob], temp_dir: Path | None = None) -> Iterator[FileJob]:
    """
    Package ``jobs`` into a temporary zip and yield it as a single ``FileJob``.

    The server-visible name is the random temp-file name with a ``.zip``
    suffix (``sim_import_<random>.zip``).  The file is deleted when the
    block exits, whether the upload succeeded or not.

    Raises
    ------
    FileAccessError
        If the temporary file cannot be created (missing or read-only
        ``temp_dir``) or an input file cannot be read.
    """
    try:
        fd, name = tempfile.mkstemp(prefix=ARCHIVE_PREFIX, suffix=ARCHIVE_SUFFIX, dir=temp_dir)
    except OSError as exc:
        where = temp_dir if temp_dir is not None else tempfile.gettempdir()
        raise FileAccessError(
            f"Cannot create temporary archive in \"{where}\": {exc.strerror}"
        ) from exc
    os.close(fd)
    archive_path = Path(name)
    try:
        build_archive([job.source_path for job in jobs], archive_path)
        logger.info(
            "Packed %d file(s) into %s (%d bytes)",
            len(jobs),
            archive_path.name,
            archive_path.stat().st_size,
        )
        yield FileJob(source_path=archive_path, server_name=archive_path.name)
    finally:
        archive_path.unlink(missing_ok=True)


# ---------------------------------------------------------------------------
# Section 4: Upload all
# ---------------------------------------------------------------------------


def upload_all(
    channel: ExchangeChannel,
    jobs: Sequence[FileJob],
    policy: TransferPolicy,
    *,
    temp_dir: Path | None = None,
) -> None:
    """Upload ``jobs`` individually in input order, or as one archive."""
    if policy.use_archive:
        with packaged_archive(jobs, temp_dir=temp_dir) as archive_job:
            upload_single_file(channel, archive_job, policy)
        return

    for job in jobs:
        upload_single_file(channel, job, policy)
