"""Membership and loyalty points."""
