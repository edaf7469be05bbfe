# Utils Package
# Utility Functions and Helpers

from .logger import logger, setup_logger, get_logger
from .helpers import *
from .constants import *
from .exceptions import TallyTransportError, ReportError
from .decorators import timed, classifies_transport_errors

__all__ = [
    "logger",
    "setup_logger",
    "get_logger",
    "TallyTransportError",
    "ReportError",
    "timed",
    "classifies_transport_errors"
]
