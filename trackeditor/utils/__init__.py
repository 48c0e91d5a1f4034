"""
PyTrackEditor Utilities Module

Utility functions and helpers:
- logger: Logging configuration and per-component child loggers
"""
from .logger import logger, get_logger

__all__ = ['logger', 'get_logger']
