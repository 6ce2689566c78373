"""
hostguard command-line tools
"""
