"""auth/ -- Identity directory, token codec and session lifecycle for SessionAuth.

Layer rule: auth/ imports only stdlib + third-party libraries (plus core/ for
settings). It does NOT import from api/. api/ imports from auth/, not the
other way around.
"""
