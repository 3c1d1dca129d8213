"""
Algorithms package for the Resource Allocation & Deadlock Engine.
Contains the shared reduction primitive, the Banker's safety check,
request avoidance, deadlock detection and deadlock resolution.
"""
