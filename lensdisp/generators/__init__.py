"""LensDisp Generators: CSV config and dataset generation."""

from .csv_generator import CSVGenerator
from .dataset_generator import DatasetGenerator

__all__ = ["CSVGenerator", "DatasetGenerator"]
