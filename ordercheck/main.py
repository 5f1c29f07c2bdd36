"""
Main script: Entry point for a verification run.

- Loads the harness config (file, then command-line overrides)
- Optionally launches the ordering service under test
- Dials the service, runs VerificationHarness, and maps the Verdict to an exit code
- Closes the client and stops the launched service on every path

Property of Uncompromising Sensors LLC.
"""

# Imports
import argparse, asyncio, sys
from typing import Optional

# Local imports
from .config import HarnessConfig, loadConfig
from .core import VerificationHarness, Verdict
from .errors import ConfigError, HarnessError, ServiceConnectionError
from .logging import configureLogging, getLogger
from .service import ServiceProcess
from .transport import OrdererClientBase, createClient


EXIT_PASS = 0
EXIT_FAIL = 1
EXIT_SETUP = 2
EXIT_INTERRUPTED = 130


# HarnessApp class
class HarnessApp:

    def __init__(self, config: HarnessConfig, log, launch: bool = False):
        self.config = config
        self.log = log
        self.launch = launch
        self.service: Optional[ServiceProcess] = None
        self.client: Optional[OrdererClientBase] = None
        self.verdict: Optional[Verdict] = None


    async def run(self) -> int:
        try:
            try:
                await self._setup()
            except (HarnessError, ValueError, OSError) as e:
                self.log.error('Setup failed', event='setupError', component='HarnessApp',
                               errorClass=type(e).__name__, errorMsg=str(e))
                return EXIT_SETUP

            harness = VerificationHarness(self.client, self.config, self.log)
            self.verdict = await harness.run()
        finally:
            await self._teardown()

        return EXIT_PASS if self.verdict.passed else EXIT_FAIL


    async def _setup(self) -> None:
        config = self.config
        connectOpts = config.connectOptions()

        if self.launch:
            if not config.service.enabled:
                raise ConfigError("--launch needs 'service.command' in the config")
            self.service = ServiceProcess(config.service, self.log)
            await self.service.start()
            # The dial doubles as the readiness probe for a freshly started service
            connectOpts['dialTimeout'] = max(config.dialTimeoutSeconds, config.service.startupTimeoutSeconds)

        self.client = createClient(config.endpoint, log=self.log)
        self.log.info('Connecting to ordering service', event='connect', component='HarnessApp',
                      endpoint=config.endpoint, dialTimeout=connectOpts['dialTimeout'])
        try:
            await self.client.connect(config.endpoint, **connectOpts)
        except ServiceConnectionError:
            # A dead service explains the failed dial better than the timeout does
            if self.service:
                self.service.ensureRunning()
            raise


    async def _teardown(self) -> None:
        if self.client:
            await self.client.close()
        if self.service:
            await self.service.stop()


def parseArgs(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog='ordercheck',
                                     description='Verify that an ordering service delivers broadcast transactions')
    parser.add_argument('--config', default=None, help='Path to harness config JSON (defaults apply when absent)')
    parser.add_argument('--endpoint', default=None, help='Service URI, e.g. grpc://localhost:7101')
    parser.add_argument('--chain-id', dest='chainId', default=None, help='Chain to broadcast to and subscribe on')
    parser.add_argument('--log-level', dest='logLevel', default=None, help='DEBUG, INFO, WARNING or ERROR')
    parser.add_argument('--log-dir', dest='logDir', default=None, help='Directory for rotating log files')
    parser.add_argument('--launch', action='store_true', help="Start the service from 'service.command' first")
    return parser.parse_args(argv)


def _overridesFromArgs(args: argparse.Namespace) -> dict:
    overrides = {}
    if args.endpoint:
        overrides['endpoint'] = args.endpoint
    if args.chainId:
        overrides['chainId'] = args.chainId
    logging = {}
    if args.logLevel:
        logging['level'] = args.logLevel.upper()
    if args.logDir:
        logging['logDir'] = args.logDir
    if logging:
        overrides['logging'] = logging
    return overrides


def main(argv=None) -> int:
    """Main entry point - runs one verification and returns the process exit code"""
    args = parseArgs(argv)

    try:
        config = loadConfig(args.config, overrides=_overridesFromArgs(args))
        configureLogging(logDir=config.logging.logDir, console=config.logging.console,
                         level=config.logging.level, utc=config.logging.utc)
    except (ConfigError, ValueError) as e:
        print(f"ordercheck: {e}", file=sys.stderr)
        return EXIT_SETUP

    log = getLogger('ordercheck')
    log.info('Starting verification run', component='HarnessApp', configPath=args.config,
             endpoint=config.endpoint, chainId=config.chainId, launch=args.launch)

    app = HarnessApp(config, log, launch=args.launch)
    try:
        code = asyncio.run(app.run())
    except KeyboardInterrupt:
        print('\nVerification run stopped by user')
        return EXIT_INTERRUPTED

    if app.verdict is not None:
        print(app.verdict.summary())
    return code


if __name__ == '__main__':
    sys.exit(main())
