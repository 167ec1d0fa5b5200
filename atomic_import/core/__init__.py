"""
Grouping, validation and data models for the importer.
"""
