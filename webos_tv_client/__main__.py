#!/usr/bin/env python3

# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

from __future__ import annotations

import sys
import argparse
import json
import asyncio
import logging

from webos_tv_client.internal_types import *

from webos_tv_client import (
    __version__ as pkg_version,
    DeviceDiscoverer,
    WebOsTvClient,
    WebOsTvClientConfig,
    load_client_config,
  )

class CmdExitError(RuntimeError):
    exit_code: int

    def __init__(self, exit_code: int, msg: Optional[str]=None):
        if msg is None:
            msg = f"Command exited with return code {exit_code}"
        super().__init__(msg)
        self.exit_code = exit_code

class ArgparseExitError(CmdExitError):
    pass

class NoExitArgumentParser(argparse.ArgumentParser):
    def exit(self, status=0, message=None):
        if message:
            self._print_message(message, sys.stderr)
        raise ArgparseExitError(status, message)

class CommandHandler:
    _argv: Optional[Sequence[str]]
    _parser: argparse.ArgumentParser
    _args: argparse.Namespace
    _provide_traceback: bool = True
    _config: Optional[WebOsTvClientConfig] = None

    def __init__(self, argv: Optional[Sequence[str]]=None):
        self._argv = argv

    def get_config(self) -> WebOsTvClientConfig:
        if self._config is None:
            self._config = load_client_config(self._args.config_file)
        return self._config

    def _on_prompt(self) -> None:
        print("Please accept the connection request on the TV...", file=sys.stderr)
        sys.stderr.flush()

    async def _create_client(self) -> WebOsTvClient:
        return await WebOsTvClient.from_config(self.get_config(), on_prompt=self._on_prompt)

    async def cmd_bare(self) -> int:
        print("A command is required", file=sys.stderr)
        return 1

    async def cmd_discover(self) -> int:
        cfg = self.get_config()
        keyword: str = cfg.keyword if self._args.keyword is None else self._args.keyword
        response_wait_time: float = cfg.response_wait_time if self._args.wait_time is None else self._args.wait_time
        bind_addresses: Optional[List[str]] = self._args.bind_addresses
        if bind_addresses is None or len(bind_addresses) == 0:
            bind_addresses = cfg.bind_addresses
        discoverer = DeviceDiscoverer(
            service_type=cfg.service_type,
            response_wait_time=response_wait_time,
            bind_addresses=bind_addresses,
            all_interfaces=self._args.all_interfaces,
          )
        locations = await discoverer.discover(keyword)
        for location in locations:
            print(location)
        return 0 if len(locations) > 0 else 1

    async def cmd_pair(self) -> int:
        client = await self._create_client()
        async with client:
            print(f"Paired with TV at {client.location}")
        return 0

    async def cmd_request(self) -> int:
        uri: str = self._args.uri
        payload: Optional[JsonableDict] = None
        if self._args.payload is not None:
            try:
                payload = json.loads(self._args.payload)
            except ValueError as e:
                raise CmdExitError(2, f"Invalid JSON payload: {e}") from e
            if not isinstance(payload, dict):
                raise CmdExitError(2, "Payload must be a JSON object")
        timeout: Optional[float] = self._args.timeout
        client = await self._create_client()
        async with client:
            response = await client.request(uri, payload=payload, timeout=timeout)
        print(json.dumps(response.payload, indent=2, sort_keys=True))
        return 0

    async def cmd_version(self) -> int:
        print(pkg_version)
        return 0

    async def arun(self) -> int:
        """Run the webos-tv command-line tool with provided arguments

        Args:
            argv (Optional[Sequence[str]], optional):
                A list of commandline arguments (NOT including the program as argv[0]!),
                or None to use sys.argv[1:]. Defaults to None.

        Returns:
            int: The exit code that would be returned if this were run as a standalone command.
        """
        parser = NoExitArgumentParser(description="Discover and control LG webOS TVs on the local network.")


        # ======================= Main command

        self._parser = parser
        parser.add_argument('--traceback', "--tb", action='store_true', default=False,
                            help='Display detailed exception information')
        parser.add_argument('--log-level', dest='log_level', default='warning',
                            choices=['debug', 'info', 'warning', 'error', 'critical'],
                            help='''The logging level to use. Default: warning''')
        parser.add_argument('-c', '--config', dest='config_file', default=None,
                            help='''The JSON configuration file to use. Default: $WEBOS_TV_CONFIG, or built-in defaults''')
        parser.set_defaults(func=self.cmd_bare)

        subparsers = parser.add_subparsers(
                            title='Commands',
                            description='Valid commands',
                            help='Additional help available with "<command-name> -h"')


        # ======================= discover

        parser_discover = subparsers.add_parser('discover', description="Find TVs on the local network and print their descriptor locations")
        parser_discover.add_argument('--keyword', default=None,
                            help='''The text a device descriptor must contain. Default: from configuration''')
        parser_discover.add_argument('--wait-time', dest='wait_time', type=float, default=None,
                            help='''The amount of time to wait for responses, in seconds. Default: from configuration''')
        parser_discover.add_argument('-b', '--bind', dest="bind_addresses", action='append', default=[],
                            help='''The local unicast IP address to bind to. May be repeated. Default: from configuration, or the wildcard address.''')
        parser_discover.add_argument('--all-interfaces', dest="all_interfaces", action='store_true', default=False,
                            help='''Probe from every local non-loopback IPv4 address instead of the wildcard address. Ignored if addresses are bound explicitly.''')
        parser_discover.set_defaults(func=self.cmd_discover)

        # ======================= pair

        parser_pair = subparsers.add_parser('pair', description="Connect to the TV and pair with it, storing the client key in the OS keyring")
        parser_pair.set_defaults(func=self.cmd_pair)

        # ======================= request

        parser_request = subparsers.add_parser('request', description="Send a request to the TV and print the response payload")
        parser_request.add_argument('uri',
                            help='''The request URI, e.g. "ssap://audio/getVolume"''')
        parser_request.add_argument('--payload', default=None,
                            help='''The request payload, as a JSON object. Default: none''')
        parser_request.add_argument('--timeout', type=float, default=None,
                            help='''Maximum time to wait for the response, in seconds. Default: no limit''')
        parser_request.set_defaults(func=self.cmd_request)

        # ======================= version

        parser_version = subparsers.add_parser('version',
                                description='''Display version information.''')
        parser_version.set_defaults(func=self.cmd_version)

        # =========================================================

        try:
            args = parser.parse_args(self._argv)
        except ArgparseExitError as ex:
            return ex.exit_code
        traceback: bool = args.traceback
        self._provide_traceback = traceback

        try:
            logging.basicConfig(
                level=logging.getLevelName(args.log_level.upper()),
            )
            self._args = args
            func: Callable[[], Awaitable[int]] = args.func
            logging.debug(f"Running command {func.__name__}, tb = {traceback}")
            rc = await func()
            logging.debug(f"Command {func.__name__} returned {rc}")
        except Exception as ex:
            if isinstance(ex, CmdExitError):
                rc = ex.exit_code
            else:
                rc = 1
            if rc != 0:
                if traceback:
                    raise
            print(f"webos-tv: error: {ex}", file=sys.stderr)
        except BaseException as ex:
            print(f"webos-tv: Unhandled exception: {ex}", file=sys.stderr)
            raise

        return rc

    def run(self) -> int:
        loop = asyncio.new_event_loop()
        try:
            asyncio.set_event_loop(loop)
            rc = loop.run_until_complete(self.arun())
        finally:
            loop.close()
        return rc

def run(argv: Optional[Sequence[str]]=None) -> int:
    try:
        rc = CommandHandler(argv).run()
    except CmdExitError as ex:
        rc = ex.exit_code
    return rc

async def arun(argv: Optional[Sequence[str]]=None) -> int:
    try:
        rc = await CommandHandler(argv).arun()
    except CmdExitError as ex:
        rc = ex.exit_code
    return rc

def main() -> None:
    sys.exit(run())

# allow running with "python3 -m", or as a standalone script
if __name__ == "__main__":
    main()
