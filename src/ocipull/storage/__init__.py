"""Registry access: token exchange, HTTP client, errors and media types."""
