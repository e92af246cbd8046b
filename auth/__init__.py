"""auth/ -- Tenants, credentials and sessions for Work Mesh.

Layer rule: auth/ imports only stdlib, third-party libraries and core/.
It does NOT import from api/, staffing/, or notify/.
api/ imports from auth/, not the other way around.
"""
