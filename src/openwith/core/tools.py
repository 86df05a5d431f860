"""
Best-effort wrappers around the external MIME tools.

Every call runs without a shell, waits at most `timeout` seconds and
returns trimmed stdout, or "" on any failure.
"""

from __future__ import annotations

import os
import signal
import subprocess
import threading

import structlog

from openwith.core.config import DEFAULT_TOOL_TIMEOUT

log = structlog.get_logger()

XDG_MIME = "xdg-mime"
FILE = "file"
MAGIKA = "magika"

# Upper bound on captured output; a MIME type or desktop id is tiny
MAX_OUTPUT_BYTES = 64 * 1024


def _kill_group(proc: subprocess.Popen) -> None:
    try:
        os.killpg(proc.pid, signal.SIGKILL)
    except ProcessLookupError:
        pass  # already exited


def run_command(argv: list[str], timeout: float = DEFAULT_TOOL_TIMEOUT) -> str:
    """Run argv and return its trimmed stdout, or "" on failure.

    At most MAX_OUTPUT_BYTES are read. A tool that writes more is killed
    and its output truncated.
    """
    try:
        proc = subprocess.Popen(
            argv,
            stdin=subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.DEVNULL,
            start_new_session=True,
        )
    except (OSError, subprocess.SubprocessError) as e:
        log.debug("tool_failed", argv=argv, error=str(e))
        return ""

    timed_out = threading.Event()

    def on_timeout() -> None:
        timed_out.set()
        _kill_group(proc)

    timer = threading.Timer(timeout, on_timeout)
    timer.start()
    try:
        output = proc.stdout.read(MAX_OUTPUT_BYTES + 1)
        truncated = len(output) > MAX_OUTPUT_BYTES
        if truncated:
            _kill_group(proc)
            output = output[:MAX_OUTPUT_BYTES]
        returncode = proc.wait()
    finally:
        timer.cancel()
        proc.stdout.close()
        if proc.poll() is None:
            _kill_group(proc)
            proc.wait()

    if timed_out.is_set():
        log.info("tool_timeout", argv=argv, timeout=timeout)
        return ""
    if truncated:
        log.debug("tool_output_truncated", argv=argv, limit=MAX_OUTPUT_BYTES)
    elif returncode != 0:
        log.debug("tool_failed", argv=argv, returncode=returncode)
        return ""
    return output.decode("utf-8", errors="replace").strip()


def query_filetype(path: str, timeout: float = DEFAULT_TOOL_TIMEOUT) -> str:
    """MIME type from the shared-mime-info database (xdg-mime)."""
    return run_command([XDG_MIME, "query", "filetype", path], timeout)


def query_file_tool(path: str, timeout: float = DEFAULT_TOOL_TIMEOUT) -> str:
    """MIME type from libmagic content sniffing (file)."""
    return run_command([FILE, "--brief", "--dereference", "--mime-type", "--", path], timeout)


def query_magika(path: str, timeout: float = DEFAULT_TOOL_TIMEOUT) -> str:
    """MIME type from the magika ML classifier."""
    return run_command([MAGIKA, "--no-colors", "--format", "%m", "--", path], timeout)


def query_default_app(mime: str, timeout: float = DEFAULT_TOOL_TIMEOUT) -> str:
    """Desktop id of the system default handler for mime (xdg-mime)."""
    if not mime:
        return ""
    return run_command([XDG_MIME, "query", "default", mime], timeout)
