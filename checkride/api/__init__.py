"""
HTTP API for the oral examiner.
"""
