# Copyright ClusterHQ Inc.  See LICENSE file for details.
# -*- test-case-name: localca.test.test_keys -*-

"""
Key-pairs for the three supported public-key algorithms.

Each algorithm has a private key class and a public key class wrapping the
corresponding ``cryptography`` object in ``original``, the same way
``twisted.internet.ssl.KeyPair`` wraps a pyOpenSSL key.  Everything outside
this module talks to keys through ``IPrivateKey`` and ``IPublicKey``; only
``new_private_key`` and the ``parse_pkcs8``/``parse_pkix`` wrappers look at
which algorithm a key uses.
"""

from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import ec, ed25519, padding, rsa
from cryptography.hazmat.primitives.serialization import (
    Encoding, NoEncryption, PrivateFormat, PublicFormat,
    load_der_private_key, load_der_public_key,
)

from constantly import Names, NamedConstant

from zope.interface import implementer

from ._errors import (
    KeyValidationError, MarshalError, ParseError, UnknownKeyTypeError,
    UnsupportedAlgorithmError,
)
from ._interfaces import IPrivateKey, IPublicKey
from ._pem import pem_text, with_preamble


RSA_DEFAULT_BITS = 2048
RSA_PUBLIC_EXPONENT = 65537
ED25519_SEED_SIZE = 32


class Algorithm(Names):
    """
    The public-key algorithms keys and certificates can be created for.

    Ed25519 has the smallest keys but is not accepted by browsers; RSA is the
    algorithm browsers most commonly accept.
    """
    ED25519 = NamedConstant()
    RSA = NamedConstant()
    ECDSA = NamedConstant()


def algorithm_for_key(original):
    """
    Find the algorithm of a ``cryptography`` key object.

    :param original: A private or public ``cryptography`` key.

    :raise UnknownKeyTypeError: For keys of any other algorithm.

    :return: An ``Algorithm`` constant.
    """
    if isinstance(original, (ed25519.Ed25519PrivateKey,
                             ed25519.Ed25519PublicKey)):
        return Algorithm.ED25519
    if isinstance(original, (rsa.RSAPrivateKey, rsa.RSAPublicKey)):
        return Algorithm.RSA
    if isinstance(original, (ec.EllipticCurvePrivateKey,
                             ec.EllipticCurvePublicKey)):
        return Algorithm.ECDSA
    raise UnknownKeyTypeError(
        u"Unknown key type: {}".format(type(original).__name__))


def _marshal(operation, function, *args):
    """
    Call a ``cryptography`` serialization function, converting its errors to
    ``MarshalError``.
    """
    try:
        return function(*args)
    except (ValueError, TypeError, UnsupportedAlgorithm) as e:
        raise MarshalError(u"{}: {}".format(operation, e)) from e


class _Key(object):
    """
    Behaviour shared by private and public keys.

    Keys compare equal when their DER encodings are equal.

    :ivar original: The wrapped ``cryptography`` key object.
    """
    _algorithm = None

    def __init__(self, original=None):
        self.original = original

    def algorithm(self):
        return self._algorithm

    def __eq__(self, other):
        if not isinstance(other, self.__class__):
            return NotImplemented
        if self.original is None or other.original is None:
            return self.original is other.original
        return self.der() == other.der()

    def __ne__(self, other):
        result = self.__eq__(other)
        if result is NotImplemented:
            return result
        return not result

    def __hash__(self):
        if self.original is None:
            return 0
        return hash(self.der())

    def __repr__(self):
        return "<{} {}>".format(
            self.__class__.__name__,
            u"uninitialized" if self.original is None else u"")


class _PublicKey(_Key):
    """
    Base class for public keys, serialized as PKIX SubjectPublicKeyInfo.
    """
    def der(self):
        return _marshal(
            u"PKIX public key", self.original.public_bytes,
            Encoding.DER, PublicFormat.SubjectPublicKeyInfo)

    def pem(self):
        pem_bytes = _marshal(
            u"PKIX public key", self.original.public_bytes,
            Encoding.PEM, PublicFormat.SubjectPublicKeyInfo)
        return with_preamble(pem_text(sha256_data=self.der()), pem_bytes)

    def equal(self, other):
        if not IPublicKey.providedBy(other):
            return False
        return (self.algorithm() is other.algorithm()
                and self.der() == other.der())


class _PrivateKey(_Key):
    """
    Base class for private keys, serialized as unencrypted PKCS#8.

    :cvar _public_class: The ``_PublicKey`` subclass for the public half.
    """
    _public_class = None

    def _private_bytes(self, encoding):
        if self.original is None:
            raise MarshalError(u"PKCS#8 private key: key uninitialized")
        return _marshal(
            u"PKCS#8 private key", self.original.private_bytes,
            encoding, PrivateFormat.PKCS8, NoEncryption())

    def _fingerprint_data(self):
        return self.der()

    def der(self):
        return self._private_bytes(Encoding.DER)

    def pem(self):
        pem_bytes = self._private_bytes(Encoding.PEM)
        return with_preamble(
            pem_text(sha256_data=self._fingerprint_data()), pem_bytes)

    def public_key(self):
        return self._public_class(self.original.public_key())

    def validate(self):
        if self.original is None:
            raise KeyValidationError(
                u"{} private key uninitialized".format(self._algorithm.name))
        self._check()

    def _check(self):
        """
        Algorithm specific consistency check of an initialized key.
        """


@implementer(IPublicKey)
class Ed25519PublicKey(_PublicKey):
    _algorithm = Algorithm.ED25519


@implementer(IPrivateKey)
class Ed25519PrivateKey(_PrivateKey):
    """
    An Ed25519 key-pair: a 32-byte seed and the public key derived from it.
    """
    _algorithm = Algorithm.ED25519
    _public_class = Ed25519PublicKey

    @classmethod
    def generate(cls):
        return cls(ed25519.Ed25519PrivateKey.generate())

    def seed(self):
        """
        :return: The 32-byte private seed.
        """
        return _marshal(
            u"ed25519 seed", self.original.private_bytes,
            Encoding.Raw, PrivateFormat.Raw, NoEncryption())

    def _fingerprint_data(self):
        return self.seed()

    def _check(self):
        if len(self.seed()) != ED25519_SEED_SIZE:
            raise KeyValidationError(u"ed25519 private key corrupt")

    def sign(self, data, hash_algorithm=None):
        # Ed25519 hashes internally.
        return self.original.sign(data)


@implementer(IPublicKey)
class RSAPublicKey(_PublicKey):
    _algorithm = Algorithm.RSA

    def pkcs1_der(self):
        """
        :return: ``bytes`` of the legacy PKCS#1 ``RSAPublicKey`` encoding.
        """
        return _marshal(
            u"PKCS#1 public key", self.original.public_bytes,
            Encoding.DER, PublicFormat.PKCS1)

    def pkcs1_pem(self):
        """
        :return: ``unicode`` text of a legacy ``RSA PUBLIC KEY`` block.
        """
        pem_bytes = _marshal(
            u"PKCS#1 public key", self.original.public_bytes,
            Encoding.PEM, PublicFormat.PKCS1)
        return with_preamble(pem_text(sha256_data=self.der()), pem_bytes)


@implementer(IPrivateKey)
class RSAPrivateKey(_PrivateKey):
    """
    An RSA key-pair, 2048 bits unless generated otherwise.
    """
    _algorithm = Algorithm.RSA
    _public_class = RSAPublicKey

    @classmethod
    def generate(cls, bits=RSA_DEFAULT_BITS):
        """
        :param int bits: The modulus size.
        """
        return cls(rsa.generate_private_key(
            public_exponent=RSA_PUBLIC_EXPONENT, key_size=bits))

    def _check(self):
        numbers = self.original.private_numbers()
        public = numbers.public_numbers
        p, q, d = numbers.p, numbers.q, numbers.d
        if p <= 1 or q <= 1 or p * q != public.n:
            raise KeyValidationError(
                u"rsa private key corrupt: invalid modulus")
        if public.e <= 1 or (d * public.e) % (p - 1) != 1 or (
                (d * public.e) % (q - 1) != 1):
            raise KeyValidationError(
                u"rsa private key corrupt: invalid exponents")
        if (numbers.dmp1 != d % (p - 1) or numbers.dmq1 != d % (q - 1)
                or (numbers.iqmp * q) % p != 1):
            raise KeyValidationError(
                u"rsa private key corrupt: invalid CRT values")

    def sign(self, data, hash_algorithm=None):
        if hash_algorithm is None:
            hash_algorithm = hashes.SHA256()
        return self.original.sign(data, padding.PKCS1v15(), hash_algorithm)


@implementer(IPublicKey)
class ECDSAPublicKey(_PublicKey):
    _algorithm = Algorithm.ECDSA


@implementer(IPrivateKey)
class ECDSAPrivateKey(_PrivateKey):
    """
    An ECDSA key-pair on the P-256 curve unless generated otherwise.
    """
    _algorithm = Algorithm.ECDSA
    _public_class = ECDSAPublicKey

    @classmethod
    def generate(cls, curve=None):
        """
        :param curve: A ``cryptography`` elliptic curve, P-256 by default.
        """
        if curve is None:
            curve = ec.SECP256R1()
        return cls(ec.generate_private_key(curve))

    def _check(self):
        private_value = self.original.private_numbers().private_value
        if private_value <= 0:
            raise KeyValidationError(u"ecdsa private key corrupt")
        derived = ec.derive_private_key(private_value, self.original.curve)
        if (derived.public_key().public_numbers()
                != self.original.public_key().public_numbers()):
            raise KeyValidationError(
                u"ecdsa private key corrupt: public point mismatch")

    def sign(self, data, hash_algorithm=None):
        if hash_algorithm is None:
            hash_algorithm = hashes.SHA256()
        return self.original.sign(data, ec.ECDSA(hash_algorithm))


_PRIVATE_KEY_CLASSES = {
    Algorithm.ED25519: Ed25519PrivateKey,
    Algorithm.RSA: RSAPrivateKey,
    Algorithm.ECDSA: ECDSAPrivateKey,
}

_PUBLIC_KEY_CLASSES = {
    Algorithm.ED25519: Ed25519PublicKey,
    Algorithm.RSA: RSAPublicKey,
    Algorithm.ECDSA: ECDSAPublicKey,
}


def new_private_key(algorithm):
    """
    Generate a fresh private key.

    :param algorithm: An ``Algorithm`` constant.

    :raise UnsupportedAlgorithmError: For any other value.

    :return: An ``IPrivateKey`` provider of the matching variant.
    """
    try:
        key_class = _PRIVATE_KEY_CLASSES[algorithm]
    except (KeyError, TypeError):
        raise UnsupportedAlgorithmError(algorithm)
    return key_class.generate()


def private_key_for(original):
    """
    Wrap a ``cryptography`` private key in the matching ``IPrivateKey``.
    """
    return _PRIVATE_KEY_CLASSES[algorithm_for_key(original)](original)


def public_key_for(original):
    """
    Wrap a ``cryptography`` public key in the matching ``IPublicKey``.
    """
    return _PUBLIC_KEY_CLASSES[algorithm_for_key(original)](original)


def parse_pkcs8(der):
    """
    Parse an unencrypted PKCS#8 private key.

    :param bytes der: The DER encoding.

    :raise UnknownKeyTypeError: If the key is not Ed25519, RSA or ECDSA.
    :raise ParseError: If the input is not a usable private key.

    :return: An ``IPrivateKey`` provider.
    """
    try:
        original = load_der_private_key(der, password=None)
    except UnsupportedAlgorithm as e:
        raise UnknownKeyTypeError(
            u"load_der_private_key: {}".format(e)) from e
    except (ValueError, TypeError) as e:
        raise ParseError(u"load_der_private_key: {}".format(e)) from e
    return private_key_for(original)


def parse_pkix(der):
    """
    Parse a PKIX SubjectPublicKeyInfo public key.

    A PKCS#1 ``RSAPublicKey`` structure is also accepted.

    :param bytes der: The DER encoding.

    :raise UnknownKeyTypeError: If the key is not Ed25519, RSA or ECDSA.
    :raise ParseError: If the input is not a usable public key.

    :return: An ``IPublicKey`` provider.
    """
    try:
        original = load_der_public_key(der)
    except UnsupportedAlgorithm as e:
        raise UnknownKeyTypeError(
            u"load_der_public_key: {}".format(e)) from e
    except (ValueError, TypeError) as e:
        raise ParseError(u"load_der_public_key: {}".format(e)) from e
    return public_key_for(original)
