# ============================================================================
# CONTAINER EXEC CLIENT
# ============================================================================
# EPOCH: 1 - WORK ITEM SCHEDULING
# STATUS: Worker - Remote invocation of the service container
# PURPOSE: Run the service command in its container and stream its stdout
# CREATED: 16 OCT 2026
# ============================================================================
"""
Container Exec Client

ContainerExec.invoke(argv, sink) runs argv inside the service container,
feeds every stdout line to ``sink.write`` (lines of any length) and
returns the terminal ExecStatus. A non-zero exit code is a FAILURE
status, not an exception; exceptions mean the exec itself could not be
carried out.

KubectlExec shells out to ``kubectl exec`` for the service container of
this pod.
"""

import asyncio
from abc import ABC, abstractmethod
from typing import List, Optional

from core.logging import ComponentType, get_logger
from worker.contracts import ExecStatus

logger = get_logger(__name__, ComponentType.WORKER)

# stdout is read in fixed chunks; lines may be longer than one chunk
READ_CHUNK_BYTES = 64 * 1024


class ContainerExec(ABC):
    """Runs a command in the service container."""

    @abstractmethod
    async def invoke(self, argv: List[str], sink) -> ExecStatus:
        """
        Run argv to completion.

        Args:
            argv: Command and arguments
            sink: Object with write(str), receives stdout

        Returns:
            Terminal ExecStatus
        """


class KubectlExec(ContainerExec):
    """ContainerExec over ``kubectl exec``."""

    def __init__(
        self,
        pod_name: str,
        container: str = "worker",
        namespace: Optional[str] = None,
        kubectl: str = "kubectl",
    ):
        self.pod_name = pod_name
        self.container = container
        self.namespace = namespace
        self.kubectl = kubectl

    def build_command(self, argv: List[str]) -> List[str]:
        command = [self.kubectl, "exec"]
        if self.namespace:
            command += ["-n", self.namespace]
        command += [self.pod_name, "-c", self.container, "--"]
        return command + list(argv)

    async def invoke(self, argv: List[str], sink) -> ExecStatus:
        command = self.build_command(argv)
        logger.debug(f"Calling worker for pod {self.pod_name} (container {self.container})")

        process = await asyncio.create_subprocess_exec(
            *command,
            stdout=asyncio.subprocess.PIPE,
        )
        try:
            pending = b""
            while True:
                chunk = await process.stdout.read(READ_CHUNK_BYTES)
                if not chunk:
                    break
                pending += chunk
                *lines, pending = pending.split(b"\n")
                for line in lines:
                    sink.write(line.decode("utf-8", errors="replace") + "\n")
            if pending:
                sink.write(pending.decode("utf-8", errors="replace"))
            exit_code = await process.wait()
        finally:
            if process.returncode is None:
                process.kill()
                await process.wait()

        status = ExecStatus.from_exit_code(exit_code)
        logger.debug(f"Sidecar status: {status.status} (exit code {exit_code})")
        return status


__all__ = ["ContainerExec", "KubectlExec"]
