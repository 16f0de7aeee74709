"""
Proxy API Package - FastAPI server in front of the chain adapters.
"""
