"""
HTTP layer: FastAPI routers for the Health Data Service API.
"""
