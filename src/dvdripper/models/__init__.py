"""Data models for DVD Ripper."""

from .rip_job import RipJob
from .title import DiscInfo, Title

__all__ = ["DiscInfo", "RipJob", "Title"]
