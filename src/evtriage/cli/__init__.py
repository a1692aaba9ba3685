"""
Command line interface for evtriage.
"""
