"""
spanner-pitr: find the latest recoverable instant for a Cloud Spanner database.
"""

__version__ = "0.2.0"
