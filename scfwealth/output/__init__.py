"""
Regression table export.
"""

from scfwealth.output.tables import RegressionTable, significance_stars, write_tables

__all__ = ["RegressionTable", "significance_stars", "write_tables"]
