"""Exceptions shared by the sampler and the reader."""

from __future__ import annotations


class Cpu1secError(Exception):
    """Base class for all cpu1sec errors."""


class SourceUnavailable(Cpu1secError):
    """The kernel counters could not be read."""


class CacheIoError(Cpu1secError):
    """Appending to or claiming the cache file failed."""


class NoData(Cpu1secError):
    """There is no cache file to hand off yet."""
