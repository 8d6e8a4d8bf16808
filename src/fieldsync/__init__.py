"""fieldsync - photo attachment sync for field-survey GIS layers."""

__version__ = "0.1.0"
