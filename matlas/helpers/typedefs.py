"""
Rudimentary type [re-]definitions for cross-versioned Python & mypy.

The stubs of some StdLib classes are generic at type-checking time,
while the runtime classes are not subscriptable on all supported versions.
Example: logging.LoggerAdapter.
"""
import logging
from typing import TYPE_CHECKING, Any, Union

if TYPE_CHECKING:
    LoggerAdapter = logging.LoggerAdapter[Any]
else:
    LoggerAdapter = logging.LoggerAdapter

# As publicly exposed: we only promise that it is based on one of the built-in loggable classes.
Logger = Union[logging.Logger, LoggerAdapter]
