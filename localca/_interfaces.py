# Copyright ClusterHQ Inc.  See LICENSE file for details.

"""
Interfaces shared by the key, certificate and authority implementations.
"""

from zope.interface import Attribute, Interface


class IPublicKey(Interface):
    """
    The public half of a key-pair.
    """
    original = Attribute(
        "The wrapped ``cryptography`` public key object.")

    def algorithm():
        """
        :return: The ``Algorithm`` constant for this key.
        """

    def der():
        """
        :raise MarshalError: If the key cannot be marshalled.

        :return: ``bytes`` of the PKIX SubjectPublicKeyInfo encoding.
        """

    def pem():
        """
        :return: ``unicode`` text with an informational preamble followed by
            a single ``PUBLIC KEY`` block.
        """

    def equal(other):
        """
        :param IPublicKey other: Another public key.

        :return: ``True`` if ``other`` is the same algorithm and numerically
            the same key.
        """


class IPrivateKey(Interface):
    """
    A private key-pair that can sign.
    """
    original = Attribute(
        "The wrapped ``cryptography`` private key object, or ``None`` for an "
        "uninitialized key.")

    def algorithm():
        """
        :return: The ``Algorithm`` constant for this key.
        """

    def der():
        """
        :raise MarshalError: If the key cannot be marshalled.

        :return: ``bytes`` of the unencrypted PKCS#8 encoding.
        """

    def pem():
        """
        :return: ``unicode`` text with an informational preamble followed by
            a single ``PRIVATE KEY`` block.
        """

    def public_key():
        """
        :return: The ``IPublicKey`` of this key-pair.
        """

    def validate():
        """
        Check that the key was initialized by a constructor or by parsing.

        :raise KeyValidationError: If the key is uninitialized or corrupt.
        """

    def sign(data, hash_algorithm=None):
        """
        Sign ``data`` using the algorithm's standard signing routine.

        :param bytes data: The message, or a digest if ``hash_algorithm``
            is ``Prehashed``.
        :param hash_algorithm: A ``cryptography`` hash algorithm; ignored
            by Ed25519.  Defaults to SHA-256.

        :return: ``bytes`` of the signature.
        """


class ICertificateAuthority(Interface):
    """
    An authority that can sign certificate templates.
    """
    certificate = Attribute("The authority's own ``Certificate``.")
    private_key = Attribute("The authority's ``IPrivateKey``.")

    def validate():
        """
        Check that the authority is usable for signing.

        :raise AuthorityValidationError: If it is not.

        :return: The parsed ``cryptography.x509.Certificate`` of the
            authority.
        """

    def sign(template, public_key):
        """
        Issue a certificate.

        :param CertificateTemplate template: The filled template.
        :param IPublicKey public_key: The subject's public key.

        :return: ``bytes`` of the DER encoded certificate.
        """
