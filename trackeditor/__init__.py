"""
PyTrackEditor: multi-track audio editing core.
"""
__version__ = "1.0.0"
