"""Collaborator interfaces and the py-cord implementation of the platform client."""
