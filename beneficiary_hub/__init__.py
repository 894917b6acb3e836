"""Team-scoped beneficiary data management: spreadsheet import, dedupe, export, form links."""

__version__ = "0.1.0"
