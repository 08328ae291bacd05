"""
Core normalization, categorization and aggregation
"""
