"""
Source crawler: discovery, a persistent crawl frontier and heuristic article detection.
"""

__version__ = "1.0.0"
