"""
Collector REST API.
"""
