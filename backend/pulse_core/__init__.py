"""Core logic for price history, oracle decoding and signal generation.

This package contains pure business logic with no I/O dependencies
(no network access, no event loop assumptions beyond plain locks).
The live trading service (pulse_app/) builds on top of it.
"""
