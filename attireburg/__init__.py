"""Attireburg backorder, waitlist and restock service."""
