import asyncio

import pytest


class LogRecorder:
    """Collects (message, type) pairs the way a UI log panel would."""

    def __init__(self):
        self.entries = []

    def __call__(self, message, msg_type="info"):
        self.entries.append((message, msg_type))

    @property
    def messages(self):
        return [m for m, _ in self.entries]

    def text(self, msg_type=None):
        return "".join(m for m, t in self.entries if msg_type is None or t == msg_type)


class FakeProcess:
    """Stands in for asyncio.subprocess.Process.

    Exits on the next loop iteration with `returncode` unless `hang` is set,
    in which case it only exits when killed. `exit_on_kill` is the code a
    kill leaves behind: a process that already exited on its own keeps its
    code even though the kill call succeeds.
    """

    def __init__(self, returncode=0, stdout=b"", stderr=b"", hang=False, exit_on_kill=-9):
        self.stdout = asyncio.StreamReader()
        self.stderr = asyncio.StreamReader()
        self.stdout.feed_data(stdout)
        self.stderr.feed_data(stderr)
        self.returncode = None
        self.killed = False
        self._exit_on_kill = exit_on_kill
        self._exited = asyncio.Event()
        if not hang:
            asyncio.get_running_loop().call_soon(self._exit, returncode)

    def _exit(self, code):
        if self.returncode is None:
            self.returncode = code
            self.stdout.feed_eof()
            self.stderr.feed_eof()
            self._exited.set()

    def kill(self):
        if self.returncode is not None:
            raise ProcessLookupError()
        self.killed = True
        self._exit(self._exit_on_kill)

    async def wait(self):
        await self._exited.wait()
        return self.returncode


class FakeSpawner:
    """Spawn adapter that records argv and hands out FakeProcess objects.

    Each behaviour is a dict of FakeProcess kwargs or an exception to raise.
    The last behaviour repeats once the list runs out.
    """

    def __init__(self, *behaviours, on_spawn=None):
        self.behaviours = list(behaviours) or [{}]
        self.on_spawn = on_spawn
        self.calls = []
        self.processes = []

    async def __call__(self, argv):
        self.calls.append(list(argv))
        index = min(len(self.calls), len(self.behaviours)) - 1
        behaviour = self.behaviours[index]
        if isinstance(behaviour, BaseException):
            raise behaviour
        proc = FakeProcess(**behaviour)
        self.processes.append(proc)
        if self.on_spawn:
            self.on_spawn(len(self.calls))
        return proc


@pytest.fixture
def log():
    return LogRecorder()
