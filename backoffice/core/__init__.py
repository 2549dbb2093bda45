"""Back-office core platform: database access, auth, organization and shared utilities."""
