"""XStream Creative Suite package.

This package orchestrates generative image, text and video calls into a set
of guided creative workflows sharing a session-scoped library.
"""

from .suite import CreativeSuite  # noqa: F401

__all__ = ["CreativeSuite"]
