#!/usr/bin/env python3
"""Quick environment & project sanity checks.

Checks the interpreter, the runtime packages and the exported model files, and
prints actionable next steps.

No external dependencies.
"""

from __future__ import annotations

import importlib.util
import os
import platform
import sys
from dataclasses import dataclass
from pathlib import Path

# (import name, distribution name)
REQUIRED_PACKAGES = [
    ("numpy", "numpy"),
    ("cv2", "opencv-python"),
    ("onnxruntime", "onnxruntime"),
    ("pydantic", "pydantic"),
    ("pydantic_settings", "pydantic-settings"),
    ("yaml", "PyYAML"),
    ("fastapi", "fastapi"),
    ("uvicorn", "uvicorn"),
]
OPTIONAL_PACKAGES = [("ultralytics", "ultralytics")]

DEFAULT_MODELS = ("fire.onnx", "yolov8n.onnx", "yolo11n-pose.onnx")


@dataclass(frozen=True)
class CheckResult:
    """Result of a single doctor check."""

    name: str
    ok: bool
    detail: str


def check_python() -> list[CheckResult]:
    ver = platform.python_version()
    ok = sys.version_info >= (3, 10)
    detail = f"{sys.executable} (Python {ver})"
    if not ok:
        detail += " (Python >= 3.10 required)"
    return [CheckResult("python", ok, detail)]


def check_packages() -> list[CheckResult]:
    """Check that runtime packages are importable in this environment."""

    results: list[CheckResult] = []
    for module, dist in REQUIRED_PACKAGES:
        found = importlib.util.find_spec(module) is not None
        detail = "installed" if found else f"missing (pip install {dist})"
        results.append(CheckResult(dist, found, detail))
    for module, dist in OPTIONAL_PACKAGES:
        found = importlib.util.find_spec(module) is not None
        detail = "installed" if found else "missing (only needed for export_model.py)"
        # Optional: never fails the run.
        results.append(CheckResult(dist, True, detail))
    return results


def check_project_files(root: Path) -> list[CheckResult]:
    """Check the config file and the exported ONNX models."""

    results: list[CheckResult] = []

    cfg = Path(os.getenv("VG_CONFIG", root / "config" / "backend.config.yml"))
    results.append(
        CheckResult(
            "config",
            True,
            f"{cfg} present" if cfg.exists() else f"{cfg} missing (defaults + VG_* env used)",
        )
    )

    model_dir = root / os.getenv("VG_MODEL_DIR", "models")
    for name in DEFAULT_MODELS:
        path = model_dir / name
        results.append(
            CheckResult(
                f"models/{name}",
                path.exists(),
                "present" if path.exists() else "missing (run: python export_model.py)",
            )
        )
    return results


def _print_section(title: str) -> None:
    """Print a human-readable section header."""

    print(f"\n== {title} ==")


def _print_results(results: list[CheckResult]) -> None:
    for r in results:
        status = "OK" if r.ok else "FAIL"
        print(f"[{status}] {r.name}: {r.detail}")


def main() -> int:
    """Entry point for the doctor CLI."""

    root = Path(__file__).resolve().parents[2]

    print("VenueGuard - doctor")
    print(f"OS: {platform.system()} {platform.release()}")
    print(f"Repo: {root}")

    _print_section("Python")
    py_results = check_python()
    _print_results(py_results)

    _print_section("Packages")
    pkg_results = check_packages()
    _print_results(pkg_results)

    _print_section("Project")
    proj_results = check_project_files(root)
    _print_results(proj_results)

    failed = [r for r in (py_results + pkg_results + proj_results) if not r.ok]

    _print_section("Next steps")
    if failed:
        print("Fix the FAIL items above, then try:")
    else:
        print("Looks good. Try:")

    print("- API:          uvicorn venueguard.api.main:app --port 8000")
    print("- Dry run:      python -m venueguard.tools.run_on_video --input clip.mp4 --output out.json --mock")
    print("- Tests:        pytest -q")

    return 1 if failed else 0


if __name__ == "__main__":
    raise SystemExit(main())
