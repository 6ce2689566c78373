"""
hostguard utility functions
"""
