"""Top-level package for the DexOpt analyzer.

Provides subpackages:
- dexopt_analyzer.core – immutable models and the error taxonomy
- dexopt_analyzer.apk – container, binary XML and resource table decoding
- dexopt_analyzer.analysis – status parsing, parallel label resolution, correlation
- dexopt_analyzer.device – pm / dumpsys / getprop collectors
- dexopt_analyzer.cli – command-line entry point and terminal rendering
"""

def _get_version() -> str:
    """Get version from pyproject.toml (dev) or importlib.metadata (installed)."""
    from pathlib import Path

    pyproject = Path(__file__).resolve().parent.parent.parent / "pyproject.toml"
    if pyproject.exists():
        try:
            content = pyproject.read_text()
            for line in content.splitlines():
                if line.strip().startswith("version"):
                    # Parse: version = "0.4.0"
                    return line.split("=")[1].strip().strip('"').strip("'")
        except OSError:
            pass

    # Fallback to importlib.metadata for installed package
    try:
        from importlib.metadata import version as pkg_version
        return pkg_version("dexopt-analyzer")
    except Exception:
        return "0.0.0"

__version__ = _get_version()
__all__: list[str] = ["__version__"]
