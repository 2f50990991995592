"""External service integrations for the API."""
