"""
cpf_auth — CPF and anonymous identity provisioning service.

Registers CPF-identified users in an external identity directory and issues
directory session tokens for both CPF-identified and anonymous users.
"""

__version__ = "1.0.0"
