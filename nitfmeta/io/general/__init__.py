"""
Common NITF decoding functionality.
"""

__classification__ = "UNCLASSIFIED"
