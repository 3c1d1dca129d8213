"""
Analysis package for the Resource Allocation & Deadlock Engine.
Contains the operation history (event log).
"""
