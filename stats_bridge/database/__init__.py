"""Firestore persistence: document shapes and the aggregate writer."""
