# Copyright ClusterHQ Inc.  See LICENSE file for details.
# -*- test-case-name: localca.test.test_tls -*-

"""
Twisted TLS context factories built from ``localca`` credentials.
"""

from OpenSSL.crypto import PKey, X509
from twisted.internet.ssl import (
    Certificate, KeyPair, PrivateCertificate, optionsForClientTLS,
)


def twisted_certificate(certificate):
    """
    :param localca.Certificate certificate: A certificate.

    :return: ``twisted.internet.ssl.Certificate``.
    """
    return Certificate(X509.from_cryptography(certificate.parse()))


def twisted_key_pair(private_key):
    """
    :param IPrivateKey private_key: A private key.

    :return: ``twisted.internet.ssl.KeyPair``.
    """
    return KeyPair(PKey.from_cryptography_key(private_key.original))


def private_certificate(certificate, private_key):
    """
    Combine a certificate and its private key into a
    ``twisted.internet.ssl.PrivateCertificate``.
    """
    return PrivateCertificate.fromCertificateAndKeyPair(
        twisted_certificate(certificate), twisted_key_pair(private_key))


def server_context_factory(certificate, private_key, trust_root=None):
    """
    Create a server TLS context presenting a certificate.

    :param localca.Certificate certificate: The server certificate.
    :param IPrivateKey private_key: Its private key.
    :param localca.Certificate trust_root: If given, clients must present a
        certificate signed by this authority.

    :return: ``twisted.internet.ssl.CertificateOptions``.
    """
    server = private_certificate(certificate, private_key)
    if trust_root is None:
        return server.options()
    return server.options(twisted_certificate(trust_root))


def client_context_factory(ca_certificate, hostname=u"localhost",
                           certificate=None, private_key=None):
    """
    Create a client TLS context trusting only one authority.

    :param localca.Certificate ca_certificate: The trusted authority.
    :param unicode hostname: The name the server certificate must match.
    :param localca.Certificate certificate: Optional client certificate.
    :param IPrivateKey private_key: The client certificate's private key.

    :return: An ``IOpenSSLClientConnectionCreator``.
    """
    client_certificate = None
    if certificate is not None:
        client_certificate = private_certificate(certificate, private_key)
    return optionsForClientTLS(
        hostname, trustRoot=twisted_certificate(ca_certificate),
        clientCertificate=client_certificate)
