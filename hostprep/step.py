from __future__ import annotations

import subprocess
import threading
import time
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, List, Optional

from .hook import Hook

# run(cmd, cwd=None, env=None, timeout=None) -> result dict
CommandRunner = Callable[..., Dict[str, Any]]


class Step(ABC):
    """A single provisioning stage.

    Steps should be idempotent where possible and return a structured dict
    that is JSON-serializable. ``status == "error"`` stops the Runner.
    """

    description = ""

    def __init__(self, id: str, config: Optional[Dict[str, Any]] = None, hook: Optional[Hook] = None, runner: Optional[CommandRunner] = None) -> None:
        self.id = id
        self.config = config or {}
        self.hook = hook
        self.run_command: CommandRunner = runner or run_command

    @abstractmethod
    def run(self) -> Dict[str, Any]:
        """Execute the step and return structured output."""

    def validate(self) -> bool:
        """Optional pre-run validation hook."""
        return True

    def intent(self) -> str:
        """One line printed before the step runs."""
        return self.description or self.id


class CommandStep(Step):
    """Run an external command and capture output.

    Config:
    - cmd: list[str] – Required. Command to execute.
    - env: dict[str, str] – Optional full environment for the child.
    - timeout: float – Optional timeout in seconds.
    - retries: int – retry count on failure (default 0).
    - cwd: str – optional working directory.
    """

    def run(self) -> Dict[str, Any]:
        cmd = self.config.get("cmd") or []
        if not isinstance(cmd, list) or not cmd:
            return {"status": "error", "error": "CommandStep requires config['cmd'] as non-empty list"}
        env = self.config.get("env")
        timeout = self.config.get("timeout")
        retries = int(self.config.get("retries", 0))
        cwd = self.config.get("cwd")
        show = bool(getattr(self, "show", False))

        attempt = 0
        last_error: Optional[str] = None
        while attempt <= retries:
            start = time.time()
            stdout_buf: List[str] = []
            stderr_buf: List[str] = []
            try:
                proc = subprocess.Popen(
                    cmd,
                    stdout=subprocess.PIPE,
                    stderr=subprocess.PIPE,
                    text=True,
                    bufsize=1,  # line-buffered
                    env=env,
                    cwd=cwd,
                )

                def _read_stream(stream, buf):
                    try:
                        for line in iter(stream.readline, ""):
                            buf.append(line)
                            if show:
                                print(line, end="", flush=True)
                    finally:
                        stream.close()

                t_out = threading.Thread(target=_read_stream, args=(proc.stdout, stdout_buf), daemon=True)
                t_err = threading.Thread(target=_read_stream, args=(proc.stderr, stderr_buf), daemon=True)
                t_out.start()
                t_err.start()

                try:
                    proc.wait(timeout=timeout)
                except subprocess.TimeoutExpired as wait_err:
                    last_error = str(wait_err)
                    proc.kill()
                    proc.wait()

                t_out.join()
                t_err.join()

                duration = time.time() - start
                rc = proc.returncode if proc.returncode is not None else -1
                result = {
                    "status": "success" if rc == 0 else "error",
                    "stdout": "".join(stdout_buf).strip(),
                    "stderr": "".join(stderr_buf).strip(),
                    "returncode": rc,
                    "duration": duration,
                    "attempts": attempt + 1,
                }
                if rc == 0:
                    return result
                last_error = f"Process exited with code {rc}"
                attempt += 1
                if attempt > retries:
                    result["error"] = last_error
                    return result
            except OSError as e:
                # Executable missing or not runnable
                last_error = str(e)
                attempt += 1
                if attempt > retries:
                    return {
                        "status": "error",
                        "error": last_error,
                        "stdout": "",
                        "stderr": "",
                        "returncode": None,
                        "duration": time.time() - start,
                        "attempts": attempt,
                    }
        return {"status": "error", "error": last_error or "unknown error"}


def run_command(
    cmd: List[str],
    cwd: Optional[str] = None,
    env: Optional[Dict[str, str]] = None,
    timeout: Optional[float] = None,
    show: bool = False,
) -> Dict[str, Any]:
    """Run ``cmd`` through a throwaway CommandStep and return its result."""
    _cs = CommandStep(
        id=f"cmd__{cmd[0] if cmd else 'empty'}",
        config={"cmd": list(cmd), "cwd": cwd, "env": env, "timeout": timeout},
    )
    setattr(_cs, "show", show)
    return _cs.run()


def command_failed(result: Dict[str, Any]) -> bool:
    return result.get("status") != "success"


def describe_failure(cmd: List[str], result: Dict[str, Any]) -> str:
    detail = (result.get("stderr") or result.get("error") or "").strip()
    msg = f"`{' '.join(cmd)}` failed"
    if result.get("returncode") is not None:
        msg += f" (exit {result['returncode']})"
    if detail:
        msg += f": {detail.splitlines()[-1]}"
    return msg
