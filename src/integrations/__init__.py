"""
External provider integrations.
"""
