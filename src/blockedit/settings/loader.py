from typing import Any, Dict, Optional, Set
import json
import os
import re
from pathlib import Path

import yaml
import json5  # type: ignore

from .models import Settings


# Variable placeholders:
#   - ${NAME}      value from the top-level `variables` section
#   - ${env:NAME}  value from the process environment
# '$${NAME}' escapes a literal '${NAME}'.
VAR_PATTERN = re.compile(
    r"(?<!\$)\$\{([A-Za-z_][A-Za-z0-9_]*(?::[A-Za-z_][A-Za-z0-9_]*)?)\}"
)

VARIABLES_KEY = "variables"

# Looked up in order by find_settings_file.
SETTINGS_FILE_NAMES = (
    "blockedit.yml",
    "blockedit.yaml",
    "blockedit.json5",
    "blockedit.json",
)


def _collect_variables(doc: Dict[str, Any]) -> Dict[str, Any]:
    """
    Read the `variables` section, given either as a mapping or as a list of
    one-key mappings. Values keep their type.
    """
    section = doc.get(VARIABLES_KEY)
    out: Dict[str, Any] = {}
    if isinstance(section, dict):
        out.update({k: v for k, v in section.items() if isinstance(k, str)})
    elif isinstance(section, list):
        for item in section:
            if isinstance(item, dict):
                out.update({k: v for k, v in item.items() if isinstance(k, str)})
    return out


def _lookup(name: str, variables: Dict[str, Any]) -> tuple[bool, Any]:
    if name.startswith("env:"):
        value = os.getenv(name[4:]) if name[4:] else None
        return (value is not None), value
    if name in variables:
        return True, variables[name]
    return False, None


def _resolve_variables(variables: Dict[str, Any]) -> Dict[str, Any]:
    """
    Resolve variables whose whole value is another placeholder (a: ${b}).
    Unknown references stay as the placeholder text. Raises ValueError on cycles.
    """
    resolved: Dict[str, Any] = {}
    in_progress: Set[str] = set()

    def resolve(name: str) -> Any:
        if name in resolved:
            return resolved[name]
        if name in in_progress:
            raise ValueError(f"Detected variable resolution cycle at '{name}'")
        in_progress.add(name)
        value = variables.get(name)
        m = VAR_PATTERN.fullmatch(value) if isinstance(value, str) else None
        if m:
            ref = m.group(1)
            if ref in variables:
                value = resolve(ref)
            else:
                found, ref_value = _lookup(ref, variables)
                if found:
                    value = ref_value
        in_progress.discard(name)
        resolved[name] = value
        return value

    for key in variables:
        resolve(key)
    return resolved


def _interpolate(text: str, variables: Dict[str, Any]) -> str:
    def repl(m: re.Match) -> str:
        found, value = _lookup(m.group(1), variables)
        if not found:
            return m.group(0)
        if value is None:
            return ""
        if isinstance(value, (dict, list)):
            return json.dumps(value, ensure_ascii=False)
        return str(value)

    return VAR_PATTERN.sub(repl, text).replace("$${", "${")


def _substitute(obj: Any, variables: Dict[str, Any]) -> Any:
    if isinstance(obj, str):
        m = VAR_PATTERN.fullmatch(obj)
        if m:
            # A value that is only a placeholder takes the variable's own type.
            found, value = _lookup(m.group(1), variables)
            return value if found else obj
        return _interpolate(obj, variables)
    if isinstance(obj, dict):
        return {k: _substitute(v, variables) for k, v in obj.items()}
    if isinstance(obj, list):
        return [_substitute(v, variables) for v in obj]
    return obj


def _load_raw_file(path: Path) -> Any:
    ext = path.suffix.lower()
    text = path.read_text(encoding="utf-8")
    if ext in {".yaml", ".yml"}:
        data = yaml.safe_load(text)
    elif ext in {".json5", ".jsonc", ".json"}:
        data = json5.loads(text)
    else:
        raise ValueError(f"Unsupported config file extension: {ext}")
    return {} if data is None else data


def load_settings(path: str) -> Settings:
    data = _load_raw_file(Path(path))
    if not isinstance(data, dict):
        raise ValueError("Root configuration must be a mapping/object")
    variables = _resolve_variables(_collect_variables(data))
    body = {k: v for k, v in data.items() if k != VARIABLES_KEY}
    return Settings.model_validate(_substitute(body, variables))


def find_settings_file(base_dir: Path) -> Optional[Path]:
    for name in SETTINGS_FILE_NAMES:
        candidate = base_dir / name
        if candidate.is_file():
            return candidate
    return None
