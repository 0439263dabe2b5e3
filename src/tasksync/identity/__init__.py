"""
Identity collaborator: resolves the opaque token that scopes remote task storage.
"""
