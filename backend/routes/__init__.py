"""API routers: auth, startups, guests."""
