"""Browser session lifecycle and the HTTP service around it."""
