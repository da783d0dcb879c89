"""
Command-line utilities built on the nitfmeta decoder.
"""

__classification__ = "UNCLASSIFIED"
