"""
Database models
"""
