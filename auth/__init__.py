"""auth/ -- Credential store, session tokens, and the session guard for AuthGate.

Layer rule: auth/ imports stdlib, third-party libraries, and core/.
It does NOT import from api/ or web/.
api/ and web/ import from auth/, not the other way around.
"""
