"""Authentication and authorization: Argon2id passwords, JWT, staff roles."""
