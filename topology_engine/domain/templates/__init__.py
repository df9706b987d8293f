"""Deployment shapes."""

from .onedev import ONEDEV_SHAPE


__all__ = ["ONEDEV_SHAPE"]
