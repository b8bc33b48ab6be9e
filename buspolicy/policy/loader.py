"""Policy file loading utilities."""

from __future__ import annotations

from pathlib import Path

from loguru import logger

from buspolicy.config.schema import PolicySourcesConfig
from buspolicy.policy.identity import IdentityResolver, SystemIdentityResolver
from buspolicy.policy.parser import PolicyIOError, PolicyLoadError, parse_document
from buspolicy.policy.store import PolicyStore


def get_policy_paths(config: PolicySourcesConfig | None = None) -> list[Path]:
    """Get the fixed policy sources, base file first."""
    cfg = config or PolicySourcesConfig()
    return [cfg.base_file, cfg.local_file]


def list_dropin_files(directory: Path, suffix: str = ".conf") -> list[Path]:
    """List drop-in fragments sorted by file name. Missing directory is an error."""
    try:
        entries = list(directory.iterdir())
    except FileNotFoundError as e:
        raise PolicyIOError("Drop-in directory does not exist", path=str(directory)) from e
    except OSError as e:
        raise PolicyIOError(
            f"Failed to get configuration file list: {e.strerror or e}", path=str(directory)
        ) from e

    files = [
        entry
        for entry in entries
        if entry.suffix == suffix and not entry.name.startswith(".") and entry.is_file()
    ]
    files.sort(key=lambda entry: entry.name)
    return files


def read_policy_text(path: Path) -> str | None:
    """Read one policy document. Returns None when the file does not exist."""
    try:
        return path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return None
    except (OSError, UnicodeDecodeError) as e:
        message = e.strerror if isinstance(e, OSError) and e.strerror else str(e)
        raise PolicyIOError(f"Failed to load: {message}", path=str(path)) from e


def load_file(
    store: PolicyStore,
    path: Path,
    *,
    resolver: IdentityResolver | None = None,
) -> int | None:
    """Parse one policy file into the store.

    Returns the number of rules committed, or None if the file is absent.
    """
    text = read_policy_text(path)
    if text is None:
        logger.debug("Policy file {} not found, skipping", path)
        return None
    count = parse_document(store, text, path=str(path), resolver=resolver)
    logger.info("Loaded {} policy rule(s) from {}", count, path)
    return count


def load_policy(
    store: PolicyStore,
    config: PolicySourcesConfig | None = None,
    *,
    resolver: IdentityResolver | None = None,
) -> list[Path]:
    """Load base, local and drop-in policy files into the store, in that order.

    Stops at the first failing file; rules committed before it stay in the
    store. Returns the files that were parsed.
    """
    cfg = config or PolicySourcesConfig()
    resolver = resolver or SystemIdentityResolver()
    loaded: list[Path] = []
    try:
        for path in get_policy_paths(cfg):
            if load_file(store, path, resolver=resolver) is not None:
                loaded.append(path)

        for path in list_dropin_files(cfg.dropin_path, cfg.dropin_suffix):
            if load_file(store, path, resolver=resolver) is not None:
                loaded.append(path)
    except PolicyLoadError as e:
        logger.error("Policy load failed: {}", e)
        raise
    return loaded
