"""Estate CRM - lead sync and assignment reconciliation for real-estate sales teams."""

__version__ = "1.0.0"
