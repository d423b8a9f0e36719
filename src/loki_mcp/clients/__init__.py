"""HTTP clients for backend APIs."""
