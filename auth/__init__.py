"""auth/ -- Credential and token lifecycle package for NoteAuth.

Layer rule: auth/ imports only stdlib, third-party libraries and core/.
It does NOT import from api/ or notes/.
api/ and notes/ import from auth/, not the other way around.
"""
