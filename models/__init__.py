"""
Models package for the Resource Allocation & Deadlock Engine.
Contains the resource ledger, process table and system state.
"""
