# Copyright ClusterHQ Inc.  See LICENSE file for details.

"""
A self-signed certificate authority that provisions TLS credentials for
local servers and test harnesses.
"""

__all__ = [
    "__version__",

    "Algorithm", "RSA_DEFAULT_BITS", "new_private_key", "algorithm_for_key",
    "Ed25519PrivateKey", "Ed25519PublicKey", "RSAPrivateKey", "RSAPublicKey",
    "ECDSAPrivateKey", "ECDSAPublicKey", "parse_pkcs8", "parse_pkix",
    "IPrivateKey", "IPublicKey", "ICertificateAuthority",

    "pem_text", "encode_pem", "parse_pem", "read_pem_file", "write_der_file",

    "KeyUsage", "ExtendedKeyUsage", "DistinguishedName",
    "CertificateTemplate", "ensure_template", "ensure_self_signed",
    "ensure_server", "ensure_client", "short_hostname",
    "default_authority_name", "DEFAULT_COUNTRY", "VALIDITY_YEARS",

    "Certificate", "create_certificate", "SelfSignedAuthority",

    "Credentials", "create_credentials", "create_rsa", "create_ed25519",
    "issue_client_credentials", "self_signed_localhost",

    "read_or_create_credentials", "read_authority", "default_directory",
    "DEFAULT_APP_NAME", "CREDENTIAL_FILE_MODE", "DIRECTORY_MODE",

    "server_context_factory", "client_context_factory",

    "CertificateAuthorityError", "UnsupportedAlgorithmError", "AddressError",
    "EmptyAddressError", "HostnameError", "MarshalError", "ParseError",
    "PEMBlockNotFoundError", "UnknownBlockTypeError", "UnknownKeyTypeError",
    "CredentialTypeError", "SigningError", "KeyValidationError",
    "AuthorityValidationError", "InconsistentCredentialsError", "PathError",
]

from ._version import __version__

from ._errors import (
    CertificateAuthorityError, UnsupportedAlgorithmError, AddressError,
    EmptyAddressError, HostnameError, MarshalError, ParseError,
    PEMBlockNotFoundError, UnknownBlockTypeError, UnknownKeyTypeError,
    CredentialTypeError, SigningError, KeyValidationError,
    AuthorityValidationError, InconsistentCredentialsError, PathError,
)
from ._interfaces import IPrivateKey, IPublicKey, ICertificateAuthority
from ._keys import (
    Algorithm, RSA_DEFAULT_BITS, new_private_key, algorithm_for_key,
    Ed25519PrivateKey, Ed25519PublicKey, RSAPrivateKey, RSAPublicKey,
    ECDSAPrivateKey, ECDSAPublicKey, parse_pkcs8, parse_pkix,
)
from ._pem import pem_text, encode_pem
from ._template import (
    KeyUsage, ExtendedKeyUsage, DistinguishedName, CertificateTemplate,
    ensure_template, ensure_self_signed, ensure_server, ensure_client,
    short_hostname, default_authority_name, DEFAULT_COUNTRY, VALIDITY_YEARS,
)
from ._certificate import Certificate, create_certificate
from ._parse import parse_pem, read_pem_file, write_der_file
from ._ca import SelfSignedAuthority
from ._credentials import (
    Credentials, create_credentials, create_rsa, create_ed25519,
    issue_client_credentials, self_signed_localhost,
)
from ._cache import (
    read_or_create_credentials, read_authority, default_directory,
    DEFAULT_APP_NAME, CREDENTIAL_FILE_MODE, DIRECTORY_MODE,
)
from ._tls import server_context_factory, client_context_factory


def _redirect_eliot_logs_for_trial():
    """
    Enable Eliot logging to the ``_trial/test.log`` file.
    """
    import os
    import sys
    if os.path.basename(sys.argv[0]) == "trial":
        from eliot.twisted import redirectLogsForTrial
        redirectLogsForTrial()
_redirect_eliot_logs_for_trial()
del _redirect_eliot_logs_for_trial
