"""
API server package: HTTP interface to the risk analysis pipeline.
"""
