"""Eventbook: event catalogue and seat booking API."""
