"""
Cache Domain Module

Entries, keys, policies and the store contract for the cache-aside layer.
"""
