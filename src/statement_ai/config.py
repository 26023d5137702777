"""Configuration loading, writing, and project initialization.

Reads TOML config files using stdlib ``tomllib`` and writes them using
``tomli_w``.  Depends only on ``models.py``.

A missing ``config.toml`` is not an error: every setting has a default,
so ``statement process`` works in any directory.
"""

from __future__ import annotations

import sys
from pathlib import Path

if sys.version_info >= (3, 11):
    import tomllib
else:
    try:
        import tomllib
    except ModuleNotFoundError:
        import tomli as tomllib  # type: ignore[no-redef]

import tomli_w

from statement_ai.models import AppConfig

CONFIG_FILENAME = "config.toml"
PROJECTS_FILENAME = "projects.json"

_HEADER = """\
# Statement AI configuration
# llm.provider: "anthropic" or "none" (offline heuristic extraction)
# llm.api_key_env: name of the env var containing the API key

"""


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def load_config(root: Path) -> AppConfig:
    """Load ``config.toml`` from *root* and return an :class:`AppConfig`.

    Missing sections and keys fall back to the :class:`AppConfig`
    defaults.  A missing file yields a default config.

    Args:
        root: Directory that may contain ``config.toml``.

    Returns:
        A fully-populated :class:`AppConfig` instance.

    Raises:
        ValueError: If ``general.default_projects`` is not a list of
            strings, if ``processing.batch_size`` is less than 1, or if
            ``llm.provider`` is not a known provider.
        tomllib.TOMLDecodeError: If the file is not valid TOML.
    """
    path = Path(root) / CONFIG_FILENAME
    if not path.is_file():
        return AppConfig()

    data = _read_toml(path)
    defaults = AppConfig()

    general = data.get("general", {})
    processing = data.get("processing", {})
    llm = data.get("llm", {})

    config = AppConfig(
        data_dir=general.get("data_dir", defaults.data_dir),
        default_projects=general.get("default_projects", defaults.default_projects),
        batch_size=int(processing.get("batch_size", defaults.batch_size)),
        llm_provider=llm.get("provider", defaults.llm_provider),
        llm_model=llm.get("model", defaults.llm_model),
        llm_api_key_env=llm.get("api_key_env", defaults.llm_api_key_env),
        llm_max_tokens=int(llm.get("max_tokens", defaults.llm_max_tokens)),
        llm_timeout=float(llm.get("timeout", defaults.llm_timeout)),
    )

    if not isinstance(config.default_projects, list) or not all(
        isinstance(name, str) for name in config.default_projects
    ):
        raise ValueError(
            f"general.default_projects must be a list of strings, got {config.default_projects!r}"
        )
    if config.batch_size < 1:
        raise ValueError(f"processing.batch_size must be >= 1, got {config.batch_size}")
    if config.llm_provider not in ("anthropic", "none"):
        raise ValueError(
            f"Unknown llm.provider {config.llm_provider!r}; expected 'anthropic' or 'none'"
        )
    return config


def save_config(root: Path, config: AppConfig) -> Path:
    """Write *config* to ``root/config.toml``, overwriting any existing file.

    Returns:
        Path to the written file.
    """
    path = Path(root) / CONFIG_FILENAME
    document = {
        "general": {
            "data_dir": config.data_dir,
            "default_projects": list(config.default_projects),
        },
        "processing": {
            "batch_size": config.batch_size,
        },
        "llm": {
            "provider": config.llm_provider,
            "model": config.llm_model,
            "api_key_env": config.llm_api_key_env,
            "max_tokens": config.llm_max_tokens,
            "timeout": config.llm_timeout,
        },
    }
    path.write_text(_HEADER + tomli_w.dumps(document), encoding="utf-8")
    return path


def projects_path(root: Path, config: AppConfig) -> Path:
    """Location of the persisted project list for *config*."""
    return Path(root) / config.data_dir / PROJECTS_FILENAME


def initialize(target_dir: Path, config: AppConfig | None = None) -> bool:
    """Create the data directory and a default ``config.toml``.

    Idempotent: an existing ``config.toml`` is **not** overwritten.

    Args:
        target_dir: The directory to initialize.
        config: Settings to write.  Defaults to :class:`AppConfig` defaults.

    Returns:
        True if a new ``config.toml`` was written.
    """
    target_dir = Path(target_dir)
    target_dir.mkdir(parents=True, exist_ok=True)

    if (target_dir / CONFIG_FILENAME).exists():
        existing = load_config(target_dir)
        (target_dir / existing.data_dir).mkdir(parents=True, exist_ok=True)
        return False

    config = config or AppConfig()
    (target_dir / config.data_dir).mkdir(parents=True, exist_ok=True)
    save_config(target_dir, config)
    return True


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _read_toml(path: Path) -> dict:
    """Read and parse a TOML file."""
    with open(path, "rb") as f:
        return tomllib.load(f)
