"""
ServiceProcess - starts and stops the ordering service under test.

The command line comes from config and may use the placeholders {dataDir},
{config}, {cert}, {key}, {listenAddr} and {grpcAddr}. Without a configured
dataDir a temporary directory is created and removed again on stop. Readiness
is not probed here; the client's bounded dial covers the startup window.

Property of Uncompromising Sensors LLC.
"""

# Imports
import asyncio, os, shutil, subprocess, tempfile
from typing import List, Optional

# Local imports
from .config import ServiceSettings
from .errors import ServiceLaunchError


class ServiceProcess:

    def __init__(self, settings: ServiceSettings, log):
        self.settings = settings
        self.log = log
        self._proc: Optional[asyncio.subprocess.Process] = None
        self._tempDir: Optional[str] = None
        self._dataDir: Optional[str] = settings.dataDir


    @property
    def pid(self) -> Optional[int]:
        return self._proc.pid if self._proc else None

    @property
    def returncode(self) -> Optional[int]:
        return self._proc.returncode if self._proc else None

    @property
    def dataDir(self) -> Optional[str]:
        return self._dataDir

    @property
    def isRunning(self) -> bool:
        return self._proc is not None and self._proc.returncode is None


    def buildCommand(self) -> List[str]:
        """Expand placeholders in the configured command."""
        values = {
            'dataDir': self._dataDir or '',
            'config': self.settings.config or '',
            'cert': self.settings.cert or '',
            'key': self.settings.key or '',
            'listenAddr': self.settings.listenAddr or '',
            'grpcAddr': self.settings.grpcAddr or '',
        }
        command = []
        for part in self.settings.command:
            for name, value in values.items():
                part = part.replace('{' + name + '}', value)
            command.append(part)
        return command


    async def start(self) -> None:
        if not self.settings.command:
            raise ServiceLaunchError('No service command configured')
        if self.isRunning:
            return

        if not self._dataDir:
            self._tempDir = tempfile.mkdtemp(prefix='ordercheck-')
            # Left for the service to create
            self._dataDir = os.path.join(self._tempDir, 'data')

        command = self.buildCommand()
        self.log.info('Starting service under test', event='serviceStart', component='ServiceProcess',
                      command=command, dataDir=self._dataDir)
        try:
            self._proc = await asyncio.create_subprocess_exec(*command, stdout=subprocess.DEVNULL,
                                                              stderr=subprocess.DEVNULL)
        except OSError as e:
            self._removeTempDir()
            self.log.error('Service failed to start', event='serviceStartError', component='ServiceProcess',
                           errorClass=type(e).__name__, errorMsg=str(e))
            raise ServiceLaunchError(f"Cannot start {command[0]}: {e}") from e

        self.log.info('Service started', event='serviceStarted', component='ServiceProcess', pid=self._proc.pid)


    def ensureRunning(self) -> None:
        """Raise if the service has already exited."""
        if self._proc is None:
            raise ServiceLaunchError('Service was never started')
        if self._proc.returncode is not None:
            raise ServiceLaunchError(f"Service exited early with code {self._proc.returncode}")


    async def stop(self, grace: float = 5.0) -> None:
        proc = self._proc
        try:
            if proc is not None and proc.returncode is None:
                self.log.info('Terminating service', event='serviceStop', component='ServiceProcess', pid=proc.pid)
                try:
                    proc.terminate()
                    await asyncio.wait_for(proc.wait(), timeout=grace)
                except ProcessLookupError:
                    pass
                except asyncio.TimeoutError:
                    self.log.warning('Service ignored terminate, killing', component='ServiceProcess', pid=proc.pid,
                                     grace=grace)
                    try:
                        proc.kill()
                    except ProcessLookupError:
                        pass
                    await proc.wait()
            if proc is not None:
                self.log.info('Service stopped', event='serviceStopped', component='ServiceProcess',
                              returncode=proc.returncode)
        finally:
            self._removeTempDir()


    def _removeTempDir(self) -> None:
        if self._tempDir:
            shutil.rmtree(self._tempDir, ignore_errors=True)
            self._tempDir = None
            self._dataDir = self.settings.dataDir


    async def __aenter__(self):
        await self.start()
        return self

    async def __aexit__(self, excType, excVal, excTb):
        await self.stop()
