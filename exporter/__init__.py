"""
Exporter Package - end-to-end export pipeline and command-line entry point.
"""

from exporter.pipeline import ExportPipeline


__all__ = ["ExportPipeline"]
