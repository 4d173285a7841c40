"""Trip models and the remote trip API client."""
