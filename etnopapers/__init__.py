"""Ethnobotanical metadata extraction from scientific article PDFs"""

__version__ = "0.1.0"
