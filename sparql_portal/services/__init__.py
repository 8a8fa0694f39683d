"""Service layer: identity resolution, access control, registrations and queries."""
