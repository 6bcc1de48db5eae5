# Copyright ClusterHQ Inc.  See LICENSE file for details.
# -*- test-case-name: localca.test.test_certificate -*-

"""
Signed certificates and the primitive that creates them.
"""

from hashlib import sha1, sha256

from cryptography import x509
from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.serialization import Encoding
from pyrsistent import PClass, field

from ._errors import ParseError, SigningError
from ._keys import Algorithm, public_key_for
from ._pem import pem_text, with_preamble
from ._template import CertificateTemplate, KeyUsage


class Certificate(PClass):
    """
    A signed X.509 certificate, stored as DER.

    The expanded form is parsed on demand by ``parse``.

    :ivar bytes der_bytes: The DER encoding.
    """
    der_bytes = field(type=bytes, mandatory=True)

    @classmethod
    def from_cryptography(cls, certificate):
        """
        :param certificate: A ``cryptography.x509.Certificate``.
        """
        return cls(der_bytes=certificate.public_bytes(Encoding.DER))

    def der(self):
        return self.der_bytes

    def pem(self):
        """
        :return: ``unicode`` text of a preamble with SHA-256 and SHA-1
            fingerprints followed by a ``CERTIFICATE`` block.
        """
        return with_preamble(
            pem_text(sha256_data=self.der_bytes, sha1_data=self.der_bytes),
            self.parse().public_bytes(Encoding.PEM))

    def fingerprint(self, digest=sha256):
        """
        :param digest: A ``hashlib`` constructor.

        :return: ``unicode`` hex digest of the whole DER encoding.
        """
        return digest(self.der_bytes).hexdigest()

    def sha1_fingerprint(self):
        return self.fingerprint(sha1)

    def parse(self):
        """
        :raise ParseError: If the DER is not a certificate.

        :return: The ``cryptography.x509.Certificate``.
        """
        try:
            return x509.load_der_x509_certificate(self.der_bytes)
        except ValueError as e:
            raise ParseError(u"x509 certificate: {}".format(e)) from e

    def public_key(self):
        """
        :return: The ``IPublicKey`` embedded in the certificate.
        """
        try:
            original = self.parse().public_key()
        except UnsupportedAlgorithm as e:
            raise ParseError(u"certificate public key: {}".format(e)) from e
        return public_key_for(original)


def signature_hash(signer):
    """
    :param IPrivateKey signer: The key that will sign.

    :return: The ``cryptography`` hash to sign certificates with, ``None``
        for Ed25519 which hashes internally.
    """
    if signer.algorithm() is Algorithm.ED25519:
        return None
    return hashes.SHA256()


def _key_usage_extension(usages):
    flags = dict(
        (usage.value, False) for usage in KeyUsage.iterconstants())
    for usage in usages:
        flags[usage.value] = True
    return x509.KeyUsage(encipher_only=False, decipher_only=False, **flags)


def _alternative_names(template):
    names = [x509.DNSName(name) for name in template.dns_names]
    names.extend(x509.IPAddress(address) for address in template.ip_addresses)
    return names


def _issuer(template, parent, public_key):
    """
    Find the issuer name and authority key identifier for a certificate.

    :param parent: ``CertificateTemplate`` when self-signing, otherwise the
        authority's ``cryptography.x509.Certificate``.
    :param IPublicKey public_key: The subject's public key.

    :return: ``tuple`` of ``x509.Name`` and ``x509.AuthorityKeyIdentifier``.
    """
    if isinstance(parent, CertificateTemplate):
        return (
            parent.subject.to_name(),
            x509.AuthorityKeyIdentifier.from_issuer_public_key(
                public_key.original),
        )
    try:
        subject_key_id = parent.extensions.get_extension_for_class(
            x509.SubjectKeyIdentifier).value
    except x509.ExtensionNotFound:
        identifier = x509.AuthorityKeyIdentifier.from_issuer_public_key(
            parent.public_key())
    else:
        identifier = (
            x509.AuthorityKeyIdentifier
            .from_issuer_subject_key_identifier(subject_key_id))
    return parent.subject, identifier


def _builder(template, issuer_name, public_key):
    """
    Start a ``cryptography.x509.CertificateBuilder`` with every field and
    extension of ``template`` but the authority key identifier.
    """
    builder = (
        x509.CertificateBuilder()
        .serial_number(template.serial_number)
        .subject_name(template.subject.to_name())
        .issuer_name(issuer_name)
        .public_key(public_key.original)
        .not_valid_before(template.not_before)
        .not_valid_after(template.not_after)
    )
    if template.basic_constraints_valid:
        builder = builder.add_extension(
            x509.BasicConstraints(ca=template.is_ca, path_length=None),
            critical=True)
    if template.key_usage:
        builder = builder.add_extension(
            _key_usage_extension(template.key_usage), critical=True)
    if template.ext_key_usage:
        builder = builder.add_extension(
            x509.ExtendedKeyUsage(
                [usage.value for usage in template.ext_key_usage]),
            critical=False)
    alternative_names = _alternative_names(template)
    if alternative_names:
        builder = builder.add_extension(
            x509.SubjectAlternativeName(alternative_names), critical=False)
    if template.is_ca:
        builder = builder.add_extension(
            x509.SubjectKeyIdentifier.from_public_key(public_key.original),
            critical=False)
    return builder


def create_certificate(template, parent, public_key, signer):
    """
    Create and sign an X.509 v3 certificate.

    The issuer is the subject of ``parent``.  A self-signed certificate
    passes the same template as ``template`` and ``parent``.

    Extensions are emitted for basic constraints, key usage, extended key
    usage, subject alternative names (DNS names then IP addresses), the
    subject key identifier of authorities and the authority key identifier.

    :param CertificateTemplate template: A filled template.
    :param parent: ``CertificateTemplate`` when self-signing, otherwise the
        authority's ``cryptography.x509.Certificate``.
    :param IPublicKey public_key: The subject's public key.
    :param IPrivateKey signer: The issuer's private key.

    :raise SigningError: If the certificate cannot be created.

    :return: ``bytes`` of the DER encoded certificate.
    """
    if signer is None or signer.original is None:
        raise SigningError(u"x509 certificate: signer uninitialized")
    if public_key is None or public_key.original is None:
        raise SigningError(u"x509 certificate: public key uninitialized")
    if template.serial_number is None:
        raise SigningError(u"x509 certificate: serial number missing")
    if template.not_before is None or template.not_after is None:
        raise SigningError(u"x509 certificate: validity period missing")

    issuer_name, authority_key_id = _issuer(template, parent, public_key)
    try:
        builder = _builder(template, issuer_name, public_key)
        builder = builder.add_extension(authority_key_id, critical=False)
        certificate = builder.sign(
            private_key=signer.original, algorithm=signature_hash(signer))
    except (ValueError, TypeError, UnsupportedAlgorithm) as e:
        raise SigningError(u"x509 certificate: {}".format(e)) from e
    return Certificate.from_cryptography(certificate).der()
