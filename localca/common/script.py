# Copyright ClusterHQ Inc.  See LICENSE file for details.

"""Helpers for localca shell commands."""

import sys

from eliot import FileDestination, add_destinations, remove_destination

from twisted.application.service import Service
from twisted.internet import task, reactor as global_reactor
from twisted.internet.defer import maybeDeferred
from twisted.python import usage
from twisted.python.log import err

from zope.interface import Interface

from .._version import __version__


__all__ = [
    'standard_options',
    'ICommandLineScript',
    'ScriptRunner',
]


def standard_options(cls):
    """Add various standard command line options to localca commands.

    :param type cls: The `class` to decorate.
    :return: The decorated `class`.
    """
    original_init = cls.__init__

    def __init__(self, *args, **kwargs):
        """Set the default verbosity to `0`

        Calls the original ``cls.__init__`` method finally.

        :param sys_module: An optional ``sys`` like module for use in
            testing. Defaults to ``sys``.
        """
        self._sys_module = kwargs.pop('sys_module', sys)
        self['verbosity'] = 0
        original_init(self, *args, **kwargs)
    cls.__init__ = __init__

    def opt_version(self):
        """Print the program's version and exit."""
        self._sys_module.stdout.write(__version__ + u'\n')
        raise SystemExit(0)
    cls.opt_version = opt_version

    def opt_verbose(self):
        """Log structured messages to standard output."""
        self['verbosity'] += 1
    cls.opt_verbose = opt_verbose
    cls.opt_v = opt_verbose

    return cls


class ICommandLineScript(Interface):
    """A script which can be run by ``ScriptRunner``."""
    def main(reactor, options):
        """
        :param reactor: A Twisted reactor.
        :param dict options: A dictionary of configuration options.
        :return: A ``Deferred`` which fires when the script has completed.
        """


class EliotLoggingService(Service):
    """
    Write eliot messages to a file while running.

    :ivar log_file: A text file to write JSON lines to.
    """
    def __init__(self, log_file):
        self.log_file = log_file
        self._destination = None

    def startService(self):
        Service.startService(self)
        self._destination = FileDestination(file=self.log_file)
        add_destinations(self._destination)

    def stopService(self):
        Service.stopService(self)
        if self._destination is not None:
            remove_destination(self._destination)
            self._destination = None


class ScriptRunner(object):
    """An API for running standard localca scripts.

    :ivar ICommandLineScript script: See ``script`` of ``__init__``.
    :ivar _react: A reference to ``task.react`` which can be overridden for
        testing purposes.
    """
    _react = staticmethod(task.react)

    def __init__(self, script, options, reactor=None, sys_module=None):
        """
        :param ICommandLineScript script: The script object to be run.
        :param usage.Options options: An option parser object.
        :param reactor: Optional reactor to override default one.
        :param sys_module: An optional ``sys`` like module for use in
            testing. Defaults to ``sys``.
        """
        self.script = script
        self.options = options
        if reactor is None:
            reactor = global_reactor
        self._reactor = reactor

        if sys_module is None:
            sys_module = sys
        self.sys_module = sys_module

    def _parse_options(self, arguments):
        """Parse the options defined in the script's options class.

        ``UsageError``s are caught and printed to `stderr` and the script then
        exits.

        :param list arguments: The command line arguments to be parsed.
        :return: A ``dict`` of configuration options.
        """
        try:
            self.options.parseOptions(arguments)
        except usage.UsageError as e:
            self.sys_module.stderr.write(str(self.options))
            self.sys_module.stderr.write(u'ERROR: ' + str(e) + u'\n')
            raise SystemExit(1)
        return self.options

    def _logging_service(self, options):
        """
        :return: An ``EliotLoggingService`` writing to standard output if
            ``--verbose`` was given to the command or its sub-command,
            otherwise a ``Service`` that does nothing.
        """
        verbosity = options.get('verbosity', 0)
        sub_options = getattr(options, 'subOptions', None)
        if sub_options is not None:
            verbosity += sub_options.get('verbosity', 0)
        if verbosity:
            return EliotLoggingService(self.sys_module.stdout)
        return Service()

    def main(self):
        """Parse arguments and run the script's main function via ``react``."""
        # --version raises SystemExit here, before anything else runs.
        options = self._parse_options(self.sys_module.argv[1:])

        log_writer = self._logging_service(options)
        log_writer.startService()

        def run_and_log(reactor):
            d = maybeDeferred(self.script.main, reactor, options)

            def got_error(failure):
                if not failure.check(SystemExit):
                    err(failure)
                return failure
            d.addErrback(got_error)
            return d
        try:
            self._react(run_and_log, [], _reactor=self._reactor)
        finally:
            log_writer.stopService()
