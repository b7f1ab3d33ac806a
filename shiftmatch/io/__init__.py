"""I/O utilities for CSV import."""

from .import_csv import import_agents_csv, import_availability_csv, import_shifts_csv, import_sites_csv

__all__ = [
    "import_sites_csv",
    "import_agents_csv",
    "import_availability_csv",
    "import_shifts_csv",
]
