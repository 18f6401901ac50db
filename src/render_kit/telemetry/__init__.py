"""telemetry: JSONL event logging and setup diagnostics."""
from .logger import RenderEventLogger  # noqa: F401
from .diagnostics import SetupDiagnostics, capture_diagnostics, save_diagnostics  # noqa: F401
