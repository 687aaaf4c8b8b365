"""
Command line interface for the IdLE Engine.
"""
