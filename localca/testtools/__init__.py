# Copyright ClusterHQ Inc.  See LICENSE file for details.

"""
Various utilities to help with unit testing.
"""

import io
import sys

from cryptography import x509

from twisted.internet.protocol import Factory, Protocol
from twisted.internet.task import Clock
from twisted.protocols.tls import TLSMemoryBIOFactory
from twisted.test.iosim import connectedServerAndClient

from zope.interface.verify import verifyObject

from .._version import __version__
from ..common.script import ICommandLineScript, ScriptRunner
from ._base import TestCase


__all__ = [
    'TestCase', 'FakeSysModule', 'help_problems',
    'StandardOptionsTestsMixin', 'ScriptTestsMixin',
    'make_standard_options_test', 'make_script_test',
    'get_extension', 'tls_exchange',
]


def help_problems(command_name, help_text):
    """Identify and return a list of help text problems.

    :param unicode command_name: The name of the command which should appear in
        the help text.
    :param unicode help_text: The full help text to be inspected.
    :return: A list of problems found with the supplied ``help_text``.
    :rtype: list
    """
    problems = []
    expected_start = u'Usage: {command}'.format(command=command_name)
    if not help_text.startswith(expected_start):
        problems.append(
            'Does not begin with {expected}. Found {actual} instead'.format(
                expected=repr(expected_start),
                actual=repr(help_text[:len(expected_start)])
            )
        )
    return problems


class FakeSysModule(object):
    """A ``sys`` like substitute.

    For use in testing the handling of `argv`, `stdout` and `stderr` by command
    line scripts.

    :ivar list argv: See ``__init__``
    :ivar stdout: A :py:class:`io.StringIO` object representing standard
        output.
    :ivar stderr: A :py:class:`io.StringIO` object representing standard
        error.
    """
    def __init__(self, argv=None):
        """Initialise the fake sys module.

        :param list argv: The arguments list which should be exposed as
            ``sys.argv``.
        """
        if argv is None:
            argv = []
        self.argv = argv
        self.stdout = io.StringIO()
        self.stderr = io.StringIO()


class ScriptTestsMixin(object):
    """Common tests for scripts that can be run via ``ScriptRunner``.

    :ivar ICommandLineScript script: The script class under test.
    :ivar usage.Options options: The options parser class to use in the test.
    :ivar text command_name: The name of the command represented by ``script``.
    """

    script = None
    options = None
    command_name = None

    def test_interface(self):
        """
        A script that is meant to be run by ``ScriptRunner`` must
        implement ``ICommandLineScript``.
        """
        self.assertTrue(verifyObject(ICommandLineScript, self.script()))

    def test_incorrect_arguments(self):
        """
        ``ScriptRunner.main`` exits with status 1 and prints help to
        `stderr` if supplied with unexpected arguments.
        """
        sys_module = FakeSysModule(
            argv=[self.command_name, u'--unexpected_argument'])
        script = ScriptRunner(
            reactor=None, script=self.script(), options=self.options(),
            sys_module=sys_module)
        error = self.assertRaises(SystemExit, script.main)
        error_text = sys_module.stderr.getvalue()
        self.assertEqual(
            (1, []),
            (error.code, help_problems(self.command_name, error_text))
        )


class StandardOptionsTestsMixin(object):
    """Tests for classes decorated with ``standard_options``.

    Tests for the standard options that should be available on every localca
    command.

    :ivar usage.Options options: The ``usage.Options`` class under test.
    """
    options = None

    def _parseable_options(self):
        options = self.options()
        # The command may otherwise give a UsageError
        # "Wrong number of arguments." if there are arguments required.
        options.parseArgs = lambda *args: None
        return options

    def test_sys_module_default(self):
        """
        ``standard_options`` adds a ``_sys_module`` attribute which is
        ``sys`` by default.
        """
        self.assertIs(sys, self.options()._sys_module)

    def test_sys_module_override(self):
        """
        ``standard_options`` adds a ``sys_module`` argument to the
        initialiser which is assigned to ``_sys_module``.
        """
        fake_sys_module = FakeSysModule()
        self.assertIs(
            fake_sys_module,
            self.options(sys_module=fake_sys_module)._sys_module
        )

    def test_version(self):
        """
        localca commands have a `--version` option which prints the current
        version string to stdout and causes the command to exit with status
        `0`.
        """
        sys = FakeSysModule()
        error = self.assertRaises(
            SystemExit,
            self.options(sys_module=sys).parseOptions,
            ['--version']
        )
        self.assertEqual(
            (__version__ + '\n', 0),
            (sys.stdout.getvalue(), error.code)
        )

    def test_verbosity_default(self):
        """
        localca commands have `verbosity` of `0` by default.
        """
        options = self.options()
        self.assertEqual(0, options['verbosity'])

    def test_verbosity_option(self):
        """
        localca commands have a `--verbose` option which increments the
        configured verbosity by `1`.
        """
        options = self._parseable_options()
        options.parseOptions(['--verbose'])
        self.assertEqual(1, options['verbosity'])

    def test_verbosity_option_short(self):
        """
        localca commands have a `-v` option which increments the configured
        verbosity by 1.
        """
        options = self._parseable_options()
        options.parseOptions(['-v'])
        self.assertEqual(1, options['verbosity'])

    def test_verbosity_multiple(self):
        """
        `--verbose` can be supplied multiple times to increase the verbosity.
        """
        options = self._parseable_options()
        options.parseOptions(['-v', '--verbose'])
        self.assertEqual(2, options['verbosity'])


def make_standard_options_test(options_class):
    """
    :param options_class: A ``usage.Options`` subclass decorated with
        ``standard_options``.

    :return: A ``TestCase`` subclass testing the standard options.
    """
    class StandardOptionsTests(StandardOptionsTestsMixin, TestCase):
        options = options_class
    return StandardOptionsTests


def make_script_test(script_class, options_class, name):
    """
    :param script_class: The ``ICommandLineScript`` implementation.
    :param options_class: Its ``usage.Options`` subclass.
    :param unicode name: The name of the command.

    :return: A ``TestCase`` subclass with the tests every script passes.
    """
    class ScriptTests(ScriptTestsMixin, TestCase):
        script = script_class
        options = options_class
        command_name = name
    return ScriptTests


def get_extension(certificate, extension_class):
    """
    :param localca.Certificate certificate: A certificate.
    :param extension_class: A ``cryptography.x509`` extension class.

    :return: The extension value, or ``None`` if the certificate does not
        carry it.
    """
    try:
        return certificate.parse().extensions.get_extension_for_class(
            extension_class).value
    except x509.ExtensionNotFound:
        return None


class _Greeter(Protocol):
    """
    Send a greeting as soon as the connection is made.
    """
    greeting = b"hello"

    def connectionMade(self):
        self.transport.write(self.greeting)


class _Recorder(Protocol):
    """
    Record everything received.
    """
    def __init__(self):
        self.received = b""
        self.lost_reason = None

    def dataReceived(self, data):
        self.received += data

    def connectionLost(self, reason):
        self.lost_reason = reason


def tls_exchange(server_context_factory, client_context_factory):
    """
    Connect a TLS client and server in memory and let the server greet the
    client.

    :param server_context_factory: Server ``CertificateOptions``.
    :param client_context_factory: Client connection creator.

    :return: ``bytes`` the client received; ``_Greeter.greeting`` when the
        handshake succeeded, empty otherwise.
    """
    recorders = []

    def build_recorder():
        recorder = _Recorder()
        recorders.append(recorder)
        return recorder

    clock = Clock()
    server_factory = TLSMemoryBIOFactory(
        server_context_factory, False, Factory.forProtocol(_Greeter),
        clock=clock)
    client_factory = TLSMemoryBIOFactory(
        client_context_factory, True, Factory.forProtocol(build_recorder),
        clock=clock)
    client, server, pump = connectedServerAndClient(
        lambda: server_factory.buildProtocol(None),
        lambda: client_factory.buildProtocol(None),
        clock=clock)
    pump.flush()
    # A failed handshake disconnects the TLS wrapper from the recorder.
    [recorder] = recorders
    return recorder.received
