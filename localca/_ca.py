# Copyright ClusterHQ Inc.  See LICENSE file for details.
# -*- test-case-name: localca.test.test_ca -*-

"""
A self-signed, single tier certificate authority.

The authority's certificate is created from a template filled by
``ensure_self_signed`` that is used as both template and parent, so the
authority is its own issuer.  Leaf certificates are signed directly by the
authority; there are no intermediate authorities.
"""

from eliot import ActionType, Field
from pyrsistent import PClass, field
from zope.interface import implementer

from ._certificate import Certificate, create_certificate
from ._errors import AuthorityValidationError, ParseError
from ._interfaces import ICertificateAuthority, IPrivateKey
from ._keys import Algorithm, new_private_key
from ._template import (
    CertificateTemplate, DistinguishedName, ensure_self_signed,
)


def _algorithm_name(algorithm):
    return getattr(algorithm, "name", repr(algorithm))


ALGORITHM_FIELD = Field(
    u"algorithm", _algorithm_name,
    u"The public-key algorithm of the generated keys.")
COMMON_NAME_FIELD = Field.for_types(
    u"common_name", [str], u"The common name of a certificate subject.")
SERIAL_NUMBER_FIELD = Field(
    u"serial_number", str, u"The serial number of a certificate.")

LOG_CREATE_AUTHORITY = ActionType(
    u"localca:authority:create",
    [ALGORITHM_FIELD, COMMON_NAME_FIELD],
    [SERIAL_NUMBER_FIELD],
    u"A self-signed certificate authority is being created.")


def _private_key_invariant(private_key):
    return (IPrivateKey.providedBy(private_key),
            u"private_key must provide IPrivateKey")


@implementer(ICertificateAuthority)
class SelfSignedAuthority(PClass):
    """
    A certificate authority made of a self-signed certificate and the
    private key it was signed with.

    An authority read back from storage is rebuilt by passing both fields
    to the constructor.

    :ivar Certificate certificate: The authority certificate.
    :ivar IPrivateKey private_key: The authority private key.
    """
    certificate = field(type=Certificate, mandatory=True)
    private_key = field(mandatory=True, invariant=_private_key_invariant)

    @classmethod
    def initialize(cls, canonical_name=u"", algorithm=Algorithm.ED25519,
                   now=None, logger=None):
        """
        Generate a new private key and a self-signed certificate for it.

        :param unicode canonical_name: The authority's common name.  When
            empty, ``default_authority_name()`` is used.
        :param algorithm: The ``Algorithm`` of the authority key.
        :param datetime now: Timezone aware current time, for tests.
        :param eliot.Logger logger: Where to log, ``None`` for the default.

        :raise UnsupportedAlgorithmError: For an unknown ``algorithm``.

        :return: A new ``SelfSignedAuthority``.
        """
        private_key = new_private_key(algorithm)
        template = CertificateTemplate(
            issuer=DistinguishedName(common_name=canonical_name))
        template = ensure_self_signed(template, now=now)
        with LOG_CREATE_AUTHORITY(
                logger, algorithm=algorithm,
                common_name=template.issuer.common_name) as action:
            der = create_certificate(
                template, template, private_key.public_key(), private_key)
            action.add_success_fields(
                serial_number=str(template.serial_number))
        return cls(certificate=Certificate(der_bytes=der),
                   private_key=private_key)

    def algorithm(self):
        return self.private_key.algorithm()

    def common_name(self):
        """
        :return: ``unicode`` common name of the authority certificate.
        """
        return DistinguishedName.from_name(
            self.certificate.parse().subject).common_name

    def validate(self):
        """
        Check that this authority can sign.

        :raise KeyValidationError: If the private key is not usable.
        :raise AuthorityValidationError: If the certificate does not parse or
            does not carry the public half of the private key.

        :return: The parsed ``cryptography.x509.Certificate``.
        """
        self.private_key.validate()
        try:
            parsed = self.certificate.parse()
            public_key = self.certificate.public_key()
        except ParseError as e:
            raise AuthorityValidationError(
                u"certificate authority: {}".format(e)) from e
        if public_key.original is None:
            raise AuthorityValidationError(
                u"certificate authority: public key uninitialized")
        if not public_key.equal(self.private_key.public_key()):
            raise AuthorityValidationError(
                u"certificate authority: certificate does not match "
                u"private key")
        return parsed

    def sign(self, template, public_key):
        """
        Issue a certificate signed by this authority.

        The template is used as is; run ``ensure_server`` or
        ``ensure_client`` on it first.

        :param CertificateTemplate template: The filled leaf template.
        :param IPublicKey public_key: The leaf's public key.

        :raise SigningError: If the certificate cannot be created.

        :return: ``bytes`` of the DER encoded leaf certificate.
        """
        parsed = self.validate()
        return create_certificate(
            template, parsed, public_key, self.private_key)

    def der(self):
        return self.certificate.der()

    def pem(self):
        return self.certificate.pem()
