"""Short-term chat context supplied by the host platform.

Scope:
    Bounded in-process window of recent chat messages read by scene extraction.
    No persistence; the host owns chat storage.
"""
