"""GitHub authentication for fetching packages from private repositories."""
