"""HTTP API for the Tubely backend."""
