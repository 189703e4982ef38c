"""
Edge proxy service fronting the contribution form backend.
"""
