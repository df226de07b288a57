"""notebook-rag: ingestion-and-retrieval core for notebook knowledge bases."""

__version__ = "0.1.0"
