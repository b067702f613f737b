"""Webhook event handling: parsing, pending-file negotiation, delivery."""
