"""
ABFI Carbon-Intensity Engine

Carbon-intensity reporting and verification service for bioenergy feedstocks.
"""

__version__ = "0.1.0"
