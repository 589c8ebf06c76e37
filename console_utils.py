# console_utils.py
import inspect
import os
import sys


def _write_line(text: str) -> None:
    encoding = getattr(sys.stdout, "encoding", None) or "utf-8"
    try:
        sys.stdout.buffer.write((text + "\n").encode(encoding, errors="replace"))
        sys.stdout.flush()
    except Exception:
        print(text)


def log(message: str) -> None:
    """Ghi 1 dòng log kèm pid và số dòng của nơi gọi."""
    caller = inspect.currentframe().f_back  # type: ignore[union-attr]
    line = caller.f_lineno if caller else -1
    pid = os.getpid()
    _write_line(f"[pid {pid:>6}] [line {line:04d}] {message}")


def emit(key: str, value) -> None:
    """Print a machine-readable KEY=value marker (no prefix, so callers can grep it)."""
    _write_line(f"{key}={'' if value is None else value}")
