"""Exporter SPI and implementations."""

from .base import BaseExporter
from .csv_exporter import CsvRowExporter

__all__ = ["BaseExporter", "CsvRowExporter"]
