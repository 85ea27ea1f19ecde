"""
sim_import/importing.py
-----------------------------------------------------------------------------
Import driver: ask the server to process each uploaded file and poll until
it is done.

The server processes an ``import`` request synchronously where it can and
answers ``progress`` when it needs another round-trip.  The client re-polls
immediately (no delay, no backoff) until it sees anything other than
``progress``.  By default there is no poll cap: a server that answers
``progress`` forever hangs the run.  ``max_polls`` exists as an opt-in
safety valve.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

from sim_import.errors import ServerImportError
from sim_import.schema import FileJob, Status
from sim_import.session import ExchangeChannel

logger = logging.getLogger(__name__)


def import_file(channel: ExchangeChannel, job: FileJob, *, max_polls: int | None = None) -> int:
    """
    Drive ``mode=import`` for one file until it reaches a terminal status.

    Returns
    -------
    int : Number of requests issued for this file.

    Raises
    ------
    ServerImportError
        If the terminal status is not ``success``, or ``max_polls`` requests
        all came back ``progress``.
    """
    polls = 0
    while True:
        response = channel.send("import", params={"filename": job.server_name})
        polls += 1
        if response.status is not Status.PROGRESS:
            break
        if max_polls is not None and polls >= max_polls:
            raise ServerImportError(
                f"Import of \"{job.server_name}\" still in progress after {polls} polls."
            )

    if response.status is not Status.SUCCESS:
        raise ServerImportError(response.message or f"Import of \"{job.server_name}\" failed.")

    logger.info("Imported %s after %d request(s)", job.server_name, polls)
    return polls


def import_all(
    channel: ExchangeChannel,
    jobs: Sequence[FileJob],
    *,
    max_polls: int | None = None,
) -> None:
    """Import every job in input order; the first failure aborts the rest."""
    for job in jobs:
        import_file(channel, job, max_polls=max_polls)
