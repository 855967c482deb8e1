from __future__ import annotations

from enum import Enum


class SentinelType(Enum):
    """
    Sentinel values that can be type checked as Literal[SentinelType.NotGiven].

    Useful wherever None is itself a meaningful value (for example a cached
    "no driver" result, or a lookup whose caller-supplied default is None).
    """

    NotGiven = "NotGiven"
    """
    Differentiates between an argument that was not given and one that was
    given as None.
    """
