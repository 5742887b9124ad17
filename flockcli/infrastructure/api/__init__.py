"""HTTP adapters for the platform's REST and streaming APIs."""
