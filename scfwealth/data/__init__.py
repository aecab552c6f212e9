"""
Data loading and sample construction modules.
"""

from scfwealth.data.scf_loader import SCFLoader, SCFDataError, ImplicateCheck
from scfwealth.data.data_pipeline import DataPipeline

__all__ = [
    "SCFLoader",
    "SCFDataError",
    "ImplicateCheck",
    "DataPipeline",
]
