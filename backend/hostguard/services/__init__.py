"""
hostguard services
"""
