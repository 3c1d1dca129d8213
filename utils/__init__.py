"""
Utilities for the Resource Allocation & Deadlock Engine.
Contains engine configuration, logging and scenario loading.
"""
