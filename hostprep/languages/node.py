from __future__ import annotations

import os
from typing import Any, Dict, List

from ..step import Step

LOCK_FILES = ("package-lock.json", "npm-shrinkwrap.json")


class NpmInstallStep(Step):
    """Install JS dependencies with `npm install` (or `npm ci` when asked and a lockfile exists).

    Config:
    - cwd: str – Required. Project directory.
    - npm: str – npm executable (default 'npm'); pass an absolute path
    - use_ci: bool (default False) – prefer `npm ci` when a lockfile exists
    - env, timeout – standard
    """

    def run(self) -> Dict[str, Any]:
        cfg = self.config
        cwd = cfg["cwd"]
        npm = cfg.get("npm") or "npm"
        use_ci = bool(cfg.get("use_ci", False))
        lock_exists = any(os.path.exists(os.path.join(cwd, fname)) for fname in LOCK_FILES)

        used_strict = use_ci and lock_exists
        cmd: List[str] = [npm, "ci"] if used_strict else [npm, "install"]
        result = self.run_command(cmd, cwd=cwd, env=cfg.get("env"), timeout=cfg.get("timeout"))
        result["executed_cmd"] = " ".join(cmd)

        # `npm ci` refuses an out-of-sync lockfile; fall back to a plain install
        if used_strict and result.get("status") == "error" and result.get("returncode") == 1:
            fallback_cmd = [npm, "install"]
            result = self.run_command(fallback_cmd, cwd=cwd, env=cfg.get("env"), timeout=cfg.get("timeout"))
            result["executed_cmd"] = " ".join(fallback_cmd)
        return result
