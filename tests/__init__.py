"""DineMatch test suite."""
