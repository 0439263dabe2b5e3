"""
Core contracts shared by every layer: errors, ports, sync state and subscription handles.
"""
