# Copyright ClusterHQ Inc.  See LICENSE file for details.
# -*- test-case-name: localca.test.test_pem -*-

"""
Parsing PEM documents into certificates and keys, and reading them from
files.
"""

import errno

from twisted.python.filepath import FilePath

from ._certificate import Certificate
from ._errors import PathError, UnknownBlockTypeError
from ._keys import parse_pkcs8, parse_pkix
from ._pem import (
    CERTIFICATE_TYPE, PRIVATE_KEY_TYPE, PUBLIC_KEY_TYPE, RSA_PUBLIC_KEY_TYPE,
    first_block,
)


def parse_pem(text):
    """
    Parse the first PEM block of ``text``.

    Lines outside the block are ignored.  ``RSA PUBLIC KEY`` blocks are read
    like ``PUBLIC KEY`` blocks.

    :param text: ``unicode`` or ``bytes`` PEM data.

    :raise PEMBlockNotFoundError: If there is no PEM block.
    :raise UnknownBlockTypeError: If the block type is not supported.
    :raise ParseError: If the block content cannot be parsed.

    :return: A ``Certificate``, an ``IPrivateKey`` or an ``IPublicKey``.
    """
    block_type, der = first_block(text)
    if block_type == CERTIFICATE_TYPE:
        certificate = Certificate(der_bytes=der)
        certificate.parse()
        return certificate
    if block_type == PRIVATE_KEY_TYPE:
        return parse_pkcs8(der)
    if block_type in (PUBLIC_KEY_TYPE, RSA_PUBLIC_KEY_TYPE):
        return parse_pkix(der)
    raise UnknownBlockTypeError(block_type)


def _as_path(path):
    if isinstance(path, FilePath):
        return path
    return FilePath(path)


def read_pem_file(path, allow_missing=False):
    """
    Read and parse a PEM file.

    :param path: ``FilePath`` or file name to read.
    :param bool allow_missing: If ``True`` a file that does not exist is not
        an error.

    :raise PathError: If the file cannot be read.

    :return: The result of ``parse_pem``, or ``None`` for a missing file
        when ``allow_missing`` is ``True``.
    """
    path = _as_path(path)
    try:
        content = path.getContent()
    except (IOError, OSError) as e:
        if allow_missing and e.errno == errno.ENOENT:
            return None
        raise PathError.from_os_error(
            u"Credential file could not be read.", e) from e
    return parse_pem(content)


def write_der_file(path, credential):
    """
    Write the raw DER encoding of a certificate or key, for inspection with
    tools such as ``openssl x509 -inform der``.

    :param path: ``FilePath`` or file name to write, conventionally ending
        in ``.der``.
    :param credential: A ``Certificate``, ``IPrivateKey`` or ``IPublicKey``.

    :raise PathError: If the file cannot be written.
    """
    path = _as_path(path)
    try:
        path.setContent(credential.der())
    except (IOError, OSError) as e:
        raise PathError.from_os_error(
            u"Unable to write DER file.", e) from e
