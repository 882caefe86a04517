"""
FastAPI routers for the livestock import service.

Each module owns one slice of the HTTP surface and is registered in main.py.
"""
