"""psgate — standards compliance scanner for PowerShell code bases."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("psgate")
except PackageNotFoundError:  # pragma: no cover
    __version__ = "0.1.0"

__all__ = ["__version__"]
