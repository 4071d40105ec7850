from __future__ import annotations

from typing import Any, Dict, List, Optional

from ..step import Step


class CargoBuildStep(Step):
    """Run `cargo build`.

    Config:
    - cwd: str – Required. Crate directory.
    - cargo: str – cargo executable (default 'cargo'); pass an absolute path
    - release: bool (default True) – add '--release'
    - features: List[str] (optional) – pass as '--features <comma,separated>'
    - env, timeout – standard
    """

    def run(self) -> Dict[str, Any]:
        cfg = self.config
        release = bool(cfg.get("release", True))
        features: List[str] = cfg.get("features") or []
        cargo: str = cfg.get("cargo") or "cargo"
        target: Optional[str] = cfg.get("target")

        cmd: List[str] = [cargo, "build"]
        if release:
            cmd.append("--release")
        if features:
            cmd += ["--features", ",".join(features)]
        if target:
            cmd += ["--target", target]

        result = self.run_command(cmd, cwd=cfg["cwd"], env=cfg.get("env"), timeout=cfg.get("timeout"))
        result["executed_cmd"] = " ".join(cmd)
        return result
