"""
FastAPI routers for the SQL dump import API.
"""
