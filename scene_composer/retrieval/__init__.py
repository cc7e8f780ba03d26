"""Character reference retrieval.

Scope:
    Optional enrichment of extracted character names with gallery/avatar image
    references. Lookups are pluggable and may be disabled entirely.
"""
