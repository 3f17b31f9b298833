"""
Grocery product-search cache: warming scheduler and eviction sweeper.
"""

__version__ = "0.1.0"
