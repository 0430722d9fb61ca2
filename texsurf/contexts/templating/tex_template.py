"""
TeX document templates.

A bare snippet ("x^2", "Hello") is not a compilable document. TeXTemplate holds the
four pieces of boilerplate wrapped around it and render_document() fills them into
document.tex.jinja. Named presets live in tex_presets.yaml and are loaded with
OmegaConf:

    >>> template = TeXTemplate.from_preset("math")
    >>> source = render_document(r"\\(x^2\\)", template)
"""

import os
from dataclasses import asdict, dataclass
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict

from dotenv import load_dotenv
from jinja2 import Environment, FileSystemLoader, Template
from omegaconf import DictConfig, OmegaConf

from texsurf.contexts.templating.logger import _log_debug

load_dotenv()

TEMPLATING_CONTEXT_PATH = Path(__file__).resolve().parent
TEMPLATES_PATH = TEMPLATING_CONTEXT_PATH / "templates"
TEX_PRESETS_PATH = Path(
    os.getenv("TEX_PRESETS_PATH", str(TEMPLATING_CONTEXT_PATH / "tex_presets.yaml"))
)

DOCUMENT_TEMPLATE = "document.tex.jinja"
TEMPLATE_FIELDS = ("requires", "document_class", "classoptions", "preamble")


@dataclass(frozen=True)
class TeXTemplate:
    """
    Boilerplate wrapped around bare TeX contents.

    Attributes:
        requires: Code placed before \\documentclass (e.g. \\RequirePackage{luatex85})
        document_class: The document class; "standalone" crops the page to the ink
        classoptions: Options for the class, i.e. \\documentclass[classoptions]{class}
        preamble: Code between \\documentclass and \\begin{document}
    """

    requires: str = r"\RequirePackage{luatex85}"
    document_class: str = "standalone"
    classoptions: str = "preview, tightpage, 12pt"
    preamble: str = "\\usepackage{amsmath, xcolor}\n\\pagestyle{empty}\n"

    @classmethod
    def from_preset(cls, name: str, config_path: Path = None) -> "TeXTemplate":
        """
        Build a template from a named preset.

        Raises:
            ValueError: If the preset is unknown or has fields TeXTemplate does not define
        """
        presets = load_tex_presets(config_path)
        if name not in presets:
            raise ValueError(f"Preset '{name}' not found. Available presets: {list(presets)}")

        config = presets[name]
        unknown = set(config) - set(TEMPLATE_FIELDS)
        if unknown:
            raise ValueError(f"Preset '{name}' has unknown fields: {sorted(unknown)}")

        return cls(**config)

    def to_dict(self) -> Dict[str, str]:
        return asdict(self)


def load_tex_presets(config_path: Path = None) -> Dict[str, Dict[str, Any]]:
    """
    Load the TeX preset file.

    Args:
        config_path: Optional path to a preset file (defaults to TEX_PRESETS_PATH)

    Returns:
        Fresh dict mapping preset names to TeXTemplate field dicts; callers may
        mutate it freely
    """
    presets = _load_presets_cached(Path(config_path or TEX_PRESETS_PATH))
    return OmegaConf.to_container(presets, resolve=True)


@lru_cache(maxsize=8)
def _load_presets_cached(config_path: Path) -> DictConfig:
    _log_debug(f"Loading TeX presets from {config_path}")
    presets = OmegaConf.load(config_path)
    OmegaConf.set_readonly(presets, True)
    return presets


@lru_cache(maxsize=1)
def _environment() -> Environment:
    # Custom delimiters to avoid LaTeX brace conflicts
    return Environment(
        loader=FileSystemLoader(str(TEMPLATES_PATH)),
        variable_start_string="<<<",
        variable_end_string=">>>",
        block_start_string="<%%",
        block_end_string="%%>",
        comment_start_string="<#",
        comment_end_string="#>",
        trim_blocks=False,
        lstrip_blocks=False,
        keep_trailing_newline=True,
    )


def document_template() -> Template:
    return _environment().get_template(DOCUMENT_TEMPLATE)


def render_document(contents: str, template: TeXTemplate = None) -> str:
    """
    Wrap TeX contents into a complete document.

    Pure function of its arguments; no TeX escaping is applied to contents.

    Args:
        contents: Body placed between \\begin{document} and \\end{document}
        template: Boilerplate to use (defaults to TeXTemplate())

    Returns:
        Complete LaTeX source
    """
    template = template or TeXTemplate()
    return document_template().render(contents=contents, **template.to_dict())
