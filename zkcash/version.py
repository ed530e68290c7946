"""
zkcash version.

- __version__: semantic version of the package (PEP 440 core); may be
  overridden at build time with ZKCASH_VERSION.
- runtime_banner(): short human-readable banner for logs and the CLI.
"""

from __future__ import annotations

import os
import platform

__version__ = os.getenv("ZKCASH_VERSION", "0.1.0")


def runtime_banner() -> str:
    return f"zkcash {__version__} (python {platform.python_version()})"


__all__ = ["__version__", "runtime_banner"]
