"""
PSD <-> editable scene interchange service.
"""

__version__ = "0.3.0"
