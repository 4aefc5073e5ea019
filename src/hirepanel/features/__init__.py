"""Feature packages for the HirePanel service."""
