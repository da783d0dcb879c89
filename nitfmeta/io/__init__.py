"""
Reading NITF header metadata.
"""

__classification__ = "UNCLASSIFIED"
