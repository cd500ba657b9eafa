"""
Trimline: word count revision service for long-form manuscripts.
"""

__version__ = "0.1.0"
