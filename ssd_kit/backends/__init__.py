"""
Optional inference backends for ssd_kit.

Backends live in a separate module so core pre/post-processing stays
lightweight and usable without installing an inference runtime.
"""

from __future__ import annotations

__all__ = []
