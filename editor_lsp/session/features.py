"""Per-feature enable switches."""

from dataclasses import dataclass, fields

from editor_lsp.utils.config_utils import get_config_bool


@dataclass
class FeatureToggles:
    diagnostics: bool = True
    hover: bool = True
    completion: bool = True
    definition: bool = True
    rename: bool = True
    code_actions: bool = True
    signature_help: bool = True

    @classmethod
    def from_config(cls, **overrides) -> "FeatureToggles":
        """Read the [features] section; keyword arguments win over config."""
        values = {f.name: get_config_bool("features", f.name, f.default) for f in fields(cls)}
        values.update(overrides)
        return cls(**values)
