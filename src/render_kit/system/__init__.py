"""system: host detection, bounded subprocess execution and OS package installation."""
from .commands import CommandResult, CommandTimeout, CommandFailed, run_command  # noqa: F401
from .probe import SystemProbe, SystemProfile, Platform, LinuxDistro, Libc  # noqa: F401
from .deps import DependencyInstaller, InstallOutcome, majority_succeeded  # noqa: F401
