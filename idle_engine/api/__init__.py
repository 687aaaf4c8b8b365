"""
HTTP API for the IdLE Engine.
"""
