"""HTTP shell — FastAPI routers, dependencies and global error handlers."""
