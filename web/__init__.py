"""
HTTP interface for the comp matching engine.
"""
