"""
Per-user link shortcuts shown in the breakroom sidebar.
"""
