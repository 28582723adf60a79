"""ISUUMO chair and estate listing service."""
