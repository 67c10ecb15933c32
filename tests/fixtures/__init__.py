"""Shared test doubles for sinkhub tests."""
