"""HTTP service for the SafeHarbor registry."""
