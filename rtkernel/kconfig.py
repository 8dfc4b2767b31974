"""
Kernel configuration parsing, overlay and normalization.
"""

import os
import re
from pathlib import Path
from typing import Callable, Dict, Iterator, List, Mapping, Optional, Tuple

from rtkernel.common import logger, run_command
from rtkernel.exceptions import ConfigMergeError
from rtkernel.models import Tristate


_SET_LINE = re.compile(r"^(CONFIG_[A-Za-z0-9_]+)=(.*)$")
_UNSET_LINE = re.compile(r"^# (CONFIG_[A-Za-z0-9_]+) is not set$")


class ConfigurationSet:
    """
    Ordered mapping of kernel options to values.

    Tristate options use ``y``/``m``/``n``; ``# CONFIG_X is not set`` reads
    as ``n``. String and numeric values are kept verbatim, quotes included.
    """

    def __init__(self, options: Optional[Mapping[str, str]] = None):
        self._options: Dict[str, str] = dict(options or {})

    @classmethod
    def from_text(cls, text: str) -> "ConfigurationSet":
        options: Dict[str, str] = {}
        for raw in text.splitlines():
            line = raw.strip()
            match = _SET_LINE.match(line)
            if match:
                options[match.group(1)] = match.group(2)
                continue
            match = _UNSET_LINE.match(line)
            if match:
                options[match.group(1)] = Tristate.NO.value
        return cls(options)

    @classmethod
    def from_file(cls, path: Path) -> "ConfigurationSet":
        return cls.from_text(Path(path).read_text())

    def to_text(self) -> str:
        lines = []
        for name, value in self._options.items():
            if value == Tristate.NO.value:
                lines.append(f"# {name} is not set")
            else:
                lines.append(f"{name}={value}")
        return "\n".join(lines) + "\n"

    def write(self, path: Path) -> Path:
        path = Path(path)
        path.write_text(self.to_text())
        return path

    def get(self, name: str, default: Optional[str] = None) -> Optional[str]:
        return self._options.get(name, default)

    def overlay(self, other: "ConfigurationSet") -> "ConfigurationSet":
        """New set with ``other``'s values winning on conflict."""
        merged = dict(self._options)
        merged.update(other._options)
        return ConfigurationSet(merged)

    def differences(self, other: "ConfigurationSet") -> List[Tuple[str, str, Optional[str]]]:
        """Options of this set whose value in ``other`` differs, as (name, ours, theirs)."""
        result = []
        for name, value in self._options.items():
            theirs = other.get(name)
            if theirs is None and value == Tristate.NO.value:
                # an unset option may legitimately vanish from a normalized config
                continue
            if theirs != value:
                result.append((name, value, theirs))
        return result

    def as_dict(self) -> Dict[str, str]:
        return dict(self._options)

    def __getitem__(self, name: str) -> str:
        return self._options[name]

    def __contains__(self, name: object) -> bool:
        return name in self._options

    def __iter__(self) -> Iterator[str]:
        return iter(self._options)

    def __len__(self) -> int:
        return len(self._options)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ConfigurationSet):
            return False
        return self._options == other._options

    def __repr__(self) -> str:
        return f"ConfigurationSet({len(self._options)} options)"


Normalizer = Callable[[ConfigurationSet], ConfigurationSet]


class KconfigNormalizer:
    """
    Resolve option dependencies with the tree's own ``merge_config.sh``.

    The composed set is written to ``.config`` and passed to
    ``scripts/kconfig/merge_config.sh``, which runs ``make alldefconfig``
    against it. The resulting ``.config`` is read back.
    """

    MERGE_SCRIPT = Path("scripts") / "kconfig" / "merge_config.sh"

    def __init__(self, source_tree: Path, arch: str, cross_compile: str, timeout: int = 600):
        self.source_tree = Path(source_tree)
        self.arch = arch
        self.cross_compile = cross_compile
        self.timeout = timeout

    def __call__(self, config: ConfigurationSet) -> ConfigurationSet:
        return self.normalize(config)

    def normalize(self, config: ConfigurationSet) -> ConfigurationSet:
        script = self.source_tree / self.MERGE_SCRIPT
        if not script.exists():
            raise ConfigMergeError(f"merge_config.sh not found in {self.source_tree}")

        dot_config = config.write(self.source_tree / ".config")
        env = os.environ.copy()
        env["ARCH"] = self.arch
        env["CROSS_COMPILE"] = self.cross_compile

        returncode, stdout, stderr = run_command(
            ["bash", str(self.MERGE_SCRIPT), ".config"],
            cwd=self.source_tree,
            env=env,
            timeout=self.timeout,
        )
        if returncode != 0:
            raise ConfigMergeError(f"merge_config.sh failed ({returncode}):\n{stdout}{stderr}")
        return ConfigurationSet.from_file(dot_config)


class ConfigComposer:
    """Overlay a config fragment on a base config and normalize the result."""

    def __init__(self, normalizer: Optional[Normalizer] = None):
        self.normalizer = normalizer

    def compose(self, base: ConfigurationSet, fragment: ConfigurationSet) -> ConfigurationSet:
        """
        Compose the final configuration.

        Args:
            base: Reference configuration of the distribution kernel
            fragment: Options to force, they win over ``base``

        Returns:
            The overlaid configuration, normalized when a normalizer is set
        """
        composed = base.overlay(fragment)
        logger.info(f"Merged {len(fragment)} fragment options into {len(base)} base options")
        if self.normalizer is None:
            return composed

        normalized = self.normalizer(composed)
        for name, requested, actual in fragment.differences(normalized):
            logger.warning(f"Value requested for {name} not in final .config: "
                           f"requested {requested}, actual {actual or 'unset'}")
        return normalized


def load_fragment(path: Path) -> ConfigurationSet:
    """Load a user config fragment."""
    path = Path(path)
    if not path.exists():
        raise ConfigMergeError(f"Config fragment not found: {path}")
    return ConfigurationSet.from_file(path)
