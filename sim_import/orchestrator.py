"""
sim_import/orchestrator.py
-----------------------------------------------------------------------------
Run orchestrator: one linear exchange session from login to import.

State machine
-------------
::

    START → AUTHENTICATED → POLICY_NEGOTIATED → UPLOADED → IMPORTED → DONE
      └───────────┴────────────────┴──────────────┴──────────┴──→ FAILED

There is no way back and no partial success: the first error moves the run
to ``FAILED`` and is re-raised to the caller.  Whatever the server already
accepted (uploaded chunks, finished imports) is not rolled back.

Exports
-------
RunState
prepare_jobs(paths) -> list[FileJob]
ExchangeRun(context, transport, settings).run() -> RunState
run_exchange(endpoint, exchange_type, login, password, files, ...) -> RunContext
"""

from __future__ import annotations

import enum
import logging
import os
from collections.abc import Sequence
from pathlib import Path

from sim_import.config import ClientSettings
from sim_import.errors import FileAccessError
from sim_import.importing import import_all
from sim_import.schema import FileJob, RunContext
from sim_import.session import ExchangeChannel, Transport, authenticate, negotiate_transfer
from sim_import.transfer import upload_all
from sim_import.transport import ExchangeTransport

logger = logging.getLogger(__name__)


class RunState(str, enum.Enum):
    START = "start"
    AUTHENTICATED = "authenticated"
    POLICY_NEGOTIATED = "policy_negotiated"
    UPLOADED = "uploaded"
    IMPORTED = "imported"
    DONE = "done"
    FAILED = "failed"


def prepare_jobs(paths: Sequence[Path | str]) -> list[FileJob]:
    """
    Check every payload file before any network activity.

    Raises
    ------
    FileAccessError
        If a path does not exist, is not a regular file, or is not readable.
    """
    jobs: list[FileJob] = []
    for raw in paths:
        path = Path(raw)
        if not path.exists():
            raise FileAccessError(f"File \"{path}\" does not exist.")
        if not path.is_file():
            raise FileAccessError(f"\"{path}\" is not a regular file.")
        if not os.access(path, os.R_OK):
            raise FileAccessError(f"File \"{path}\" is not readable.")
        jobs.append(FileJob.for_path(path))
    return jobs


class ExchangeRun:
    """
    Sequences session, transfer and import for one ``RunContext``.

    The transport is passed in and owned by whoever created it; the run
    only threads it through the components via an ``ExchangeChannel``.
    """

    def __init__(
        self,
        context: RunContext,
        transport: Transport,
        settings: ClientSettings | None = None,
    ) -> None:
        self.context = context
        self.transport = transport
        self.settings = settings or ClientSettings()
        self.state = RunState.START
        self.history: list[RunState] = [RunState.START]

    def _advance(self, state: RunState) -> None:
        logger.debug("Run state %s -> %s", self.state.value, state.value)
        self.state = state
        self.history.append(state)

    def run(self) -> RunState:
        """Execute the whole exchange; returns ``RunState.DONE`` or raises."""
        ctx = self.context
        try:
            channel = ExchangeChannel(self.transport, ctx.endpoint, ctx.exchange_type)

            ctx.session = authenticate(channel, ctx.login, ctx.password.get_secret_value())
            channel = channel.bind(ctx.session)
            self._advance(RunState.AUTHENTICATED)

            ctx.policy = negotiate_transfer(channel)
            self._advance(RunState.POLICY_NEGOTIATED)

            upload_all(channel, ctx.jobs, ctx.policy, temp_dir=self.settings.temp_dir)
            self._advance(RunState.UPLOADED)

            # Imports always name the original files, also after an archive
            # upload: the server unpacks the archive before importing.
            import_all(channel, ctx.jobs, max_polls=self.settings.max_polls)
            self._advance(RunState.IMPORTED)
        except Exception:
            self._advance(RunState.FAILED)
            raise

        self._advance(RunState.DONE)
        logger.info("Exchange finished: %d file(s) imported", len(ctx.jobs))
        return self.state


def run_exchange(
    endpoint: str,
    exchange_type: str,
    login: str,
    password: str,
    files: Sequence[Path | str],
    *,
    settings: ClientSettings | None = None,
    transport: Transport | None = None,
) -> RunContext:
    """
    Validate inputs, open a transport (unless one is supplied) and run.

    Returns
    -------
    RunContext with ``session`` and ``policy`` filled in.

    Raises
    ------
    ExchangeError
        Any subclass, from whichever phase failed.
    """
    settings = settings or ClientSettings()
    context = RunContext(
        endpoint=endpoint,
        exchange_type=exchange_type,
        login=login,
        password=password,
        jobs=prepare_jobs(files),
    )

    if transport is not None:
        ExchangeRun(context, transport, settings).run()
        return context

    with ExchangeTransport(settings) as owned:
        ExchangeRun(context, owned, settings).run()
    return context
