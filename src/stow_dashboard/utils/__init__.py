"""Low-level helpers shared by the services."""
