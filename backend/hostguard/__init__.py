"""
hostguard - SSH host key verification against known_hosts trust stores
"""

__version__ = "1.0.0"
