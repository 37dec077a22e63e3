"""
Detecting the provider's own version.

The codebase does not contain the version directly: releases depend on tags
rather than on in-code version bumps (see ``setuptools_scm`` in ``setup.py``).

The version is determined only once at startup when the code is loaded.
"""
import importlib.metadata
from typing import Optional

version: Optional[str] = None

try:
    name, *_ = __name__.split('.')  # usually "matlas", unless renamed/forked.
    version = importlib.metadata.version(name)
except importlib.metadata.PackageNotFoundError:
    pass  # not installed, or used from a plain source tree.
