"""Rocafe - cost and backup core for a small food-production business."""

from .utils.constants import APP_VERSION

__version__ = APP_VERSION
