"""Core module for relay configuration and utilities."""
