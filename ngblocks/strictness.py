"""
Module for alerting the user when pcap-ng data is decodable but not
strictly valid (repeated options that may only appear once, blocks
outside of any section, ...).
"""

import warnings
from enum import Enum

from ngblocks.exceptions import PcapngStrictnessError, PcapngStrictnessWarning


class Strictness(Enum):
    NONE = 0  # accept anything silently
    WARN = 1  # accept, with a warning
    FIX = 2  # warn and correct where a correction exists
    FORBID = 3  # raise PcapngStrictnessError


strict_level = Strictness.FORBID


def set_strictness(level):
    if not isinstance(level, Strictness):
        raise TypeError("expected a Strictness, got {0!r}".format(level))
    global strict_level
    strict_level = level


def get_strictness():
    return strict_level


def problem(msg):
    "Raise or warn about questionable data, depending on the strictness."
    if strict_level == Strictness.FORBID:
        raise PcapngStrictnessError(msg)
    elif strict_level in (Strictness.WARN, Strictness.FIX):
        warnings.warn(PcapngStrictnessWarning(msg))


def warn(msg):
    "Warn about questionable data, unless strictness is NONE."
    if strict_level.value > Strictness.NONE.value:
        warnings.warn(PcapngStrictnessWarning(msg))


def should_fix():
    "Whether questionable data should be corrected, rather than kept."
    return strict_level == Strictness.FIX
