"""
Process — run one installer invocation under a timeout and a cancel token.

stdout and stderr are merged and captured line by line.  The call
returns when the process exits, the timeout elapses, or the cancel
event is set, whichever happens first; in the last two cases the
process is terminated (then killed after a grace period).
"""
import asyncio
import logging
from typing import List, NamedTuple, Optional, Sequence

logger = logging.getLogger(__name__)


class ProcessOutcome(NamedTuple):
    exit_code: Optional[int]
    output: List[str]
    timed_out: bool = False
    cancelled: bool = False


async def _read_lines(stream: asyncio.StreamReader, output: List[str]) -> None:
    while True:
        line = await stream.readline()
        if not line:
            return
        output.append(line.decode("utf-8", errors="replace").rstrip("\r\n"))


async def _run_to_exit(process: asyncio.subprocess.Process, output: List[str]) -> int:
    await _read_lines(process.stdout, output)
    return await process.wait()


async def _stop(process: asyncio.subprocess.Process, grace_seconds: float) -> None:
    if process.returncode is not None:
        return
    process.terminate()
    try:
        await asyncio.wait_for(process.wait(), timeout=grace_seconds)
    except asyncio.TimeoutError:
        logger.warning("process %d did not terminate, killing", process.pid)
        process.kill()
        await process.wait()


async def run_process(
    argv: Sequence[str],
    timeout_seconds: float,
    cancel_event: Optional[asyncio.Event] = None,
    grace_seconds: float = 5.0,
) -> ProcessOutcome:
    """
    Run *argv* to completion, timeout or cancellation.

    Raises OSError if the executable cannot be started.
    """
    if cancel_event is None:
        cancel_event = asyncio.Event()

    process = await asyncio.create_subprocess_exec(
        *argv,
        stdin=asyncio.subprocess.DEVNULL,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.STDOUT,
    )
    output: List[str] = []
    finished = asyncio.create_task(_run_to_exit(process, output))
    try:
        cancelled = asyncio.create_task(cancel_event.wait())
        try:
            done, _ = await asyncio.wait(
                {finished, cancelled},
                timeout=timeout_seconds,
                return_when=asyncio.FIRST_COMPLETED,
            )
        finally:
            cancelled.cancel()

        if finished in done:
            return ProcessOutcome(exit_code=finished.result(), output=output)
    except BaseException:
        # caller cancelled or reading failed: the child must not outlive us
        finished.cancel()
        await _stop(process, grace_seconds)
        raise

    # timed out or cancelled: stop reading, stop the process
    finished.cancel()
    try:
        await finished
    except asyncio.CancelledError:
        pass
    await _stop(process, grace_seconds)

    was_cancelled = cancelled in done
    logger.debug("process %d stopped (%s)", process.pid, "cancelled" if was_cancelled else "timeout")
    return ProcessOutcome(
        exit_code=process.returncode,
        output=output,
        timed_out=not was_cancelled,
        cancelled=was_cancelled,
    )
