"""auth/ -- Authentication and authorization package for the User API.

Layer rule: auth/ imports stdlib, third-party libraries and core/ (config
and the error taxonomy). It does NOT import from api/.
api/ imports from auth/, not the other way around.
"""
