"""Netflow — relationship network analytics.

Turns people and weighted relationships into structural metrics,
clusters, patterns, insights, and a force-directed layout.
"""

__version__ = "0.3.0"
