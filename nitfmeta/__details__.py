__classification__ = "UNCLASSIFIED"
_post_identifier = ''
