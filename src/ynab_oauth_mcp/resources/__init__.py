"""
Tool operations, one module per YNAB resource.

Each operation takes the YNABServices container as its first argument,
validates its parameters before any I/O, and returns plain dicts shaped for
the assistant.
"""
