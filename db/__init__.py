"""db/ -- Database handle, table definitions and the pagination helper.

Layer rule: db/ imports only stdlib, third-party libraries, core/ and the
enums in auth/roles.py + auth/models.py. It does NOT import from api/ or mail/.
"""
