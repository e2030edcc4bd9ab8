"""
Package initialization for the DICOM intake service.

The service stores uploaded DICOM files under unique storage keys and answers
two read queries against them: a single header tag lookup and a PNG rendering
of the first image frame.
"""

# Version of the application
__version__ = "0.1.0"
