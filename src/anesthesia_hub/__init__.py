"""Anesthesia Research Hub: PubMed ingestion and AI enrichment pipeline."""

__version__ = "0.1.0"
