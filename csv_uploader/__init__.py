"""
CSV uploader: validate, transform and bulk-load CSV files into a database table.
"""
__version__ = "0.1.0"
