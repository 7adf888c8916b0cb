"""auth/ -- Credential-issuance core: login, registration, and their collaborators.

Layer rule: auth/ imports only stdlib + third-party libraries and core/.
It does NOT import from api/. api/ imports from auth/, not the other way around.

auth/service.py is the transport-free core. It depends on the CredentialStore
and TokenIssuer protocols in auth/ports.py, never on auth/store.py or
auth/tokens.py directly.
"""
