"""
Shared building blocks: tile types, Web-Mercator projection, JSON logging,
rate tracking.
"""
