"""
Financial literacy and wealth accumulation: SCF 2019 median regressions.
"""

__version__ = "0.1.0"
