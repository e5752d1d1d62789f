"""
benor - a Ben-Or randomized binary consensus node.
"""

__version__ = "1.0.0"
