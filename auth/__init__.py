"""auth/ -- Users, roles, tokens and the authentication flows.

Layer rule: auth/ imports stdlib, third-party libraries, core/ and db/.
It does NOT import from api/ or mail/.
api/ imports from auth/, not the other way around.
"""
