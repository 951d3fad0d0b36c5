# bead_pattern/utils.py
from __future__ import annotations

"""
Print-based logging, value formatting and progress reporting.

The library stays quiet unless debug=True; the CLI uses the same helpers for
its report.
"""

import sys
from typing import Any, Iterable, List, Optional, Tuple

from .core_types import ProgressCallback, ProgressEvent


def format_duration(seconds: float) -> str:
    """'12.3ms', '4.56s' or '2m 5s'."""
    if seconds < 1.0:
        return f"{seconds * 1000.0:.1f}ms"
    if seconds < 60.0:
        return f"{seconds:.2f}s"
    minutes = int(seconds // 60)
    return f"{minutes}m {int(round(seconds - 60 * minutes))}s"


def format_value(value: Any) -> str:
    """on/off for bools, 1,234 for ints, up to 3 decimals for floats."""
    if isinstance(value, bool):
        return "on" if value else "off"
    if isinstance(value, int):
        return f"{value:,}"
    if isinstance(value, float):
        return f"{value:.3f}".rstrip("0").rstrip(".")
    return str(value)


def format_percentage(x: float, decimals: int = 1) -> str:
    """0..1 fraction as a percentage."""
    return f"{x * 100.0:.{decimals}f}%"


def key_value_pairs_to_string(
    pairs: Iterable[Tuple[str, Any]], sep: str = "  ", eq: str = ": "
) -> str:
    """(name, value) pairs as 'name: value' blocks joined by sep."""
    out: List[str] = []
    for name, value in pairs:
        out.append(f"{name}{eq}{format_value(value)}")
    return sep.join(out)


# Logging


def log(message: str) -> None:
    print(message, flush=True)


def debug_log(message: str) -> None:
    print(f"[debug] {message}", flush=True)


def warn(message: str) -> None:
    print(f"[warn] {message}", file=sys.stderr, flush=True)


def error(message: str) -> None:
    print(f"[error] {message}", file=sys.stderr, flush=True)


def print_banner(title: str) -> None:
    print(f"\n=== {title} ===", flush=True)


def print_config_line(
    section: str, pairs: Iterable[Tuple[str, Any]], debug: bool
) -> None:
    """
    One settings line, e.g.:
      [run] Size: 40x40  Colours: 16  Dither: floyd-steinberg  Precise: off
    Goes through debug_log() when debug=True, else log().
    """
    line = f"[{section}] {key_value_pairs_to_string(pairs)}"
    (debug_log if debug else log)(line)


# Progress


def emit_progress(
    progress: Optional[ProgressCallback], stage: str, percent: float, message: str
) -> None:
    """Call progress with a clamped 0..100 event; no-op without a callback."""
    if progress is None:
        return
    pct = int(max(0, min(100, percent)))
    progress(ProgressEvent(stage=stage, progress=pct, message=message))


def console_progress(event: ProgressEvent) -> None:
    """ProgressCallback that redraws one terminal line per event."""
    sys.stdout.write(f"\r\033[K[{event.stage}] {event.progress:3d}%  {event.message}")
    if event.stage == "complete":
        sys.stdout.write("\n")
    sys.stdout.flush()


def enable_line_buffered_stdout() -> None:
    reconfig = getattr(sys.stdout, "reconfigure", None)
    if callable(reconfig):
        try:
            reconfig(line_buffering=True, write_through=True)
        except (ValueError, OSError):
            pass


__all__ = [
    "format_duration",
    "format_value",
    "format_percentage",
    "key_value_pairs_to_string",
    "log",
    "debug_log",
    "warn",
    "error",
    "print_banner",
    "print_config_line",
    "emit_progress",
    "console_progress",
    "enable_line_buffered_stdout",
]
