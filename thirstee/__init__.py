"""
Thirstee client data layer: TTL cache, fetch coordination and auth gating.
"""
__version__ = "0.3.0"
