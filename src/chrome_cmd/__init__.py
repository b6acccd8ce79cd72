"""chrome-cmd - Control Chrome from the command line via a native-messaging bridge."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("chrome-cmd")
except PackageNotFoundError:
    __version__ = "0.0.0.dev0"  # Fallback for editable installs without metadata

__all__ = ["__version__"]
