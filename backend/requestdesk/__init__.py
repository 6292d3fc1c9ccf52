"""
RequestDesk - multi-tenant facilities request tracking API.
"""
