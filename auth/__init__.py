"""auth/ -- Credential and session-authority core for VoidRunner.

passwords.py  bcrypt hashing/verification
tokens.py     TokenManager: issue / validate / revoke bearer tokens
service.py    AuthService: register / login / logout
store.py      CredentialStore capability + memory and SQL adapters

Layer rule: auth/ does NOT import from api/. Import from core/ is allowed.
api/ imports from auth/, not the other way around.
"""
