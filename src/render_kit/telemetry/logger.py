"""Structured JSONL event logging for browser setup and conversion runs."""
import json
import logging
import os
import time

log = logging.getLogger(__name__)


class RenderEventLogger:
    """Writes one JSON line per event to a per-run JSONL file.

    All logging is best-effort; methods never raise.
    Supports context-manager protocol for automatic close.
    """

    def __init__(self, run_id: str, log_dir: str = "data/logs/render_events",
                 component: str | None = None):
        self._run_id = run_id
        self._component = component
        self._f = None
        try:
            os.makedirs(log_dir, exist_ok=True)
            safe_run = run_id.replace("/", "_").replace("\\", "_")
            path = os.path.join(log_dir, f"render_{safe_run}.jsonl")
            self._f = open(path, "a", encoding="utf-8")
            self.path = path
        except Exception as e:
            self.path = ""
            log.warning(f"RenderEventLogger: failed to open log file: {e}")

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()

    def _write(self, event: dict):
        if self._f is None:
            return
        try:
            event["ts"] = time.time()
            event["run_id"] = self._run_id
            if self._component is not None:
                event["component"] = self._component
            self._f.write(json.dumps(event, ensure_ascii=False, default=str) + "\n")
            self._f.flush()
        except Exception as e:
            log.warning(f"RenderEventLogger: write failed: {e}")

    def log_setup_start(self, profile: dict, skip_download: bool, pinned_path: str):
        self._write({
            "event": "setup_start",
            "profile": profile,
            "skip_download": skip_download,
            "pinned_path": pinned_path,
        })

    def log_setup_end(self, state: str, executable_path: str | None,
                      install_outcome: dict | None, error: str, duration: float):
        self._write({
            "event": "setup_end",
            "state": state,
            "executable_path": executable_path,
            "install_outcome": install_outcome,
            "error": error,
            "duration": duration,
        })

    def log_launch_attempt(self, attempt: int, executable_path: str | None,
                           error: str, duration: float, fallback: bool):
        self._write({
            "event": "launch_attempt",
            "attempt": attempt,
            "executable_path": executable_path,
            "error": error,
            "duration": duration,
            "fallback": fallback,
        })

    def log_launch_end(self, ok: bool, attempts: int, executable_path: str | None, error: str):
        self._write({
            "event": "launch_end",
            "ok": ok,
            "attempts": attempts,
            "executable_path": executable_path,
            "error": error,
        })

    def log_conversion_end(self, converter: str, ok: bool, size: int,
                           pages: int | None, duration_ms: float, error: str = ""):
        self._write({
            "event": "conversion_end",
            "converter": converter,
            "ok": ok,
            "size": size,
            "pages": pages,
            "duration_ms": duration_ms,
            "error": error,
        })

    def close(self):
        if self._f is not None:
            try:
                self._f.flush()
                self._f.close()
            except Exception:
                pass
            self._f = None
