"""coderepo_rag.generation.prompt_builder

Named Jinja2 prompt templates for answering questions about code.

A template is made of an optional system message, optional few-shot
examples and a user block. The parts are joined with newlines and rendered
with :class:`jinja2.StrictUndefined`, so a template that references a
variable the caller did not pass fails loudly instead of rendering a blank.
The built-in ``code_qa`` template expects ``question`` and ``context`` and
shows ``repository_url`` when one is given.

Extra templates can be loaded from JSON or YAML files holding one template
mapping or a list of them.

Classes
-------
PromptTemplate
    One named template.
PromptBuilder
    Registry of templates keyed by name.
"""
import json
import warnings
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Union

import yaml
from jinja2 import Environment, StrictUndefined, meta

DEFAULT_PROMPT_NAME = "code_qa"

DEFAULT_TEMPLATES: List[Dict[str, Any]] = [
    {
        "name": DEFAULT_PROMPT_NAME,
        "system": "You are an AI assistant helping analyze code from source repositories.",
        "user": (
            "{% if repository_url is defined and repository_url %}Repository: {{ repository_url }}\n{% endif %}"
            "User question: {{ question }}\n\n"
            "Here is the relevant code context I found:\n"
            "{{ context }}\n\n"
            "Please provide a helpful answer based on the code context above.\n"
            "Be specific about what the code does and how it works when answering the user's question.\n"
            "Mention any patterns or potential improvements you notice."
        ),
    },
]

_ENV = Environment(undefined=StrictUndefined, keep_trailing_newline=True, autoescape=False)


@dataclass(frozen=True)
class PromptTemplate:
    """One named prompt template.

    Parameters
    ----------
    name : str
        Registry key.
    system : str or None, optional
        System instructions placed first.
    few_shot : list[dict[str, str]], optional
        Examples, each rendered from its ``"content"`` key.
    user : str, optional
        The instruction block placed last.
    """

    name: str
    system: Optional[str] = None
    few_shot: List[Dict[str, str]] = field(default_factory=list)
    user: str = ""

    @property
    def source(self) -> str:
        parts = [self.system] if self.system else []
        parts.extend(example.get("content", "") for example in self.few_shot)
        if self.user:
            parts.append(self.user)
        return "\n".join(parts)

    @property
    def variables(self) -> set[str]:
        """Names referenced by the template, including optional ones."""
        return meta.find_undeclared_variables(_ENV.parse(self.source))

    def render(self, **kwargs: Any) -> str:
        return _ENV.from_string(self.source).render(**kwargs)


def _template_from_mapping(data: Mapping[str, Any]) -> PromptTemplate:
    if "name" not in data:
        raise KeyError("Template definition missing required key: 'name'")
    name = data["name"]
    if not isinstance(name, str):
        raise TypeError(f"Template 'name' must be a str, got {type(name)!r}")
    if not name.strip():
        raise ValueError("Template 'name' must be a non-empty string")

    few_shot = data.get("few_shot") or []
    if not isinstance(few_shot, list):
        raise TypeError(f"Template 'few_shot' must be a list or None, got {type(few_shot)!r}")
    for key in ("system", "user"):
        value = data.get(key)
        if value is not None and not isinstance(value, str):
            raise TypeError(f"Template '{key}' must be a str or None, got {type(value)!r}")

    return PromptTemplate(
        name=name.strip(),
        system=data.get("system"),
        few_shot=list(few_shot),
        user=data.get("user") or "",
    )


def _read_template_file(path: Path) -> Any:
    suffix = path.suffix.lower()
    with path.open("r", encoding="utf-8") as f:
        if suffix == ".json":
            return json.load(f)
        if suffix in (".yaml", ".yml"):
            return yaml.safe_load(f)
    raise ValueError(f"Unsupported prompt file type: {path.suffix!r} (expected .json, .yaml or .yml)")


class PromptBuilder:
    """Registry of prompt templates.

    Parameters
    ----------
    include_defaults : bool, optional
        Register the built-in ``code_qa`` template. Defaults to ``True``.
    """

    def __init__(self, include_defaults: bool = True):
        self.templates: Dict[str, PromptTemplate] = {}
        if include_defaults:
            for data in DEFAULT_TEMPLATES:
                self.register(_template_from_mapping(data))

    def register(self, template: PromptTemplate) -> None:
        if template.name in self.templates:
            warnings.warn(f"Overwriting existing prompt template: {template.name}")
        self.templates[template.name] = template

    def register_from_dict(self, data: Mapping[str, Any]) -> None:
        """Validate a template mapping and register it.

        Raises
        ------
        KeyError
            If ``"name"`` is missing.
        TypeError
            If a field has the wrong type.
        ValueError
            If ``"name"`` is blank.
        """
        self.register(_template_from_mapping(data))

    def register_from_file(self, path: Union[Path, str], base_dir: Optional[Path] = None) -> List[str]:
        """Register every template stored in a JSON or YAML file.

        Parameters
        ----------
        path : Path or str
            File holding one template mapping or a list of them.
        base_dir : Path or None, optional
            Directory a relative ``path`` is resolved against.

        Returns
        -------
        list[str]
            Names registered, in file order.

        Raises
        ------
        FileNotFoundError
            If the file does not exist.
        ValueError
            If the extension is not supported.
        TypeError
            If the file does not hold a mapping or a list of mappings.
        """
        p = Path(path)
        if not p.is_absolute() and base_dir is not None:
            p = Path(base_dir) / p
        p = p.resolve()
        if not p.exists():
            raise FileNotFoundError(f"Prompt file not found: {p}")

        data = _read_template_file(p)
        items = [data] if isinstance(data, Mapping) else data
        if not isinstance(items, list) or not all(isinstance(item, Mapping) for item in items):
            raise TypeError(f"Prompt file {p} must contain a template mapping or a list of them")

        templates = [_template_from_mapping(item) for item in items]
        for template in templates:
            self.register(template)
        return [template.name for template in templates]

    def register_from_source(self, source: str, base_dir: Optional[Path] = None) -> List[str]:
        """Register templates from ``file:<path>`` or a plain path."""
        if not isinstance(source, str):
            raise TypeError(f"source must be a str, got {type(source)!r}")
        if source.startswith("file:"):
            source = source[len("file:"):].strip()
        return self.register_from_file(source, base_dir=base_dir)

    def list_prompts(self) -> List[str]:
        return sorted(self.templates)

    def has_prompt(self, name: str) -> bool:
        return name in self.templates

    def build(self, name: str, **kwargs: Any) -> str:
        """Render the template registered under ``name``.

        Raises
        ------
        KeyError
            If no template has that name.
        jinja2.UndefinedError
            If the template uses a variable missing from ``kwargs``.
        """
        template = self.templates.get(name)
        if template is None:
            available = ", ".join(self.list_prompts())
            raise KeyError(f"No template registered under name: {name}. Available: [{available}]")
        return template.render(**kwargs)


__all__ = ["PromptTemplate", "PromptBuilder", "DEFAULT_PROMPT_NAME"]
