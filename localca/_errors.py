# Copyright ClusterHQ Inc.  See LICENSE file for details.

"""
Exceptions raised by the certificate authority.
"""


class CertificateAuthorityError(Exception):
    """
    Base class for all errors raised by ``localca``.
    """


class UnsupportedAlgorithmError(CertificateAuthorityError, ValueError):
    """
    Error raised when a key is requested for an algorithm that is not one
    of ``Algorithm.ED25519``, ``Algorithm.RSA`` or ``Algorithm.ECDSA``.
    """
    def __init__(self, algorithm):
        super(UnsupportedAlgorithmError, self).__init__(
            u"Unsupported algorithm: {!r}".format(algorithm))
        self.algorithm = algorithm


class AddressError(CertificateAuthorityError, ValueError):
    """
    Error raised when an entry in a list of IP literals and domain names
    cannot be used in a certificate.
    """


class EmptyAddressError(AddressError):
    """
    Error raised when an entry in a list of IP literals and domain names is
    the empty string.

    :ivar int position: The 1-based position of the empty entry.
    """
    def __init__(self, position):
        super(EmptyAddressError, self).__init__(
            u"address#{} empty".format(position))
        self.position = position


class HostnameError(CertificateAuthorityError):
    """
    Error raised when the host name cannot be determined or is empty.
    """


class MarshalError(CertificateAuthorityError):
    """
    Error raised when a key cannot be marshalled to PKCS#8 or PKIX.
    """


class ParseError(CertificateAuthorityError, ValueError):
    """
    Error raised when PEM or DER input cannot be parsed.
    """


class PEMBlockNotFoundError(ParseError):
    """
    Error raised when input contains no PEM block.
    """


class UnknownBlockTypeError(ParseError):
    """
    Error raised for a PEM block whose type is not ``CERTIFICATE``,
    ``PRIVATE KEY``, ``PUBLIC KEY`` or ``RSA PUBLIC KEY``.
    """
    def __init__(self, block_type):
        super(UnknownBlockTypeError, self).__init__(
            u"Unknown pem block type: {!r}".format(block_type))
        self.block_type = block_type


class UnknownKeyTypeError(ParseError):
    """
    Error raised when a PKCS#8 or PKIX structure holds a key of an
    algorithm other than Ed25519, RSA or ECDSA.
    """


class CredentialTypeError(ParseError):
    """
    Error raised when a credential file holds a different kind of PEM block
    than expected, e.g. a public key where a certificate should be.
    """


class SigningError(CertificateAuthorityError):
    """
    Error raised when a certificate cannot be created or signed.
    """


class KeyValidationError(CertificateAuthorityError):
    """
    Error raised when a private key is uninitialized or corrupt.
    """


class AuthorityValidationError(CertificateAuthorityError):
    """
    Error raised when a certificate authority is not usable for signing.
    """


class InconsistentCredentialsError(CertificateAuthorityError):
    """
    Error raised when a certificate and a private key read from storage do
    not belong together.
    """


class PathError(CertificateAuthorityError):
    """
    Error raised when a credential file cannot be read or written.
    """
    def __init__(self, message, filename=None, code=None, failure=None):
        super(PathError, self).__init__(message)
        self.message = message
        self.filename = filename
        self.code = code
        self.failure = failure

    def __str__(self):
        error = self.message
        if self.failure:
            error = error + u" " + self.failure
        if self.filename:
            error = error + u" " + self.filename
        return error

    @classmethod
    def from_os_error(cls, message, error):
        """
        Create a ``PathError`` from an ``OSError``.

        :param unicode message: What was being attempted.
        :param OSError error: The underlying error.
        """
        return cls(message, error.filename, error.errno, error.strerror)
