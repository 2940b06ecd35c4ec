"""
UI mockup options.

Produced only for features with a user interface: exactly three minimal,
self-contained options written in the conventions of the UI framework
detected in the target repo. When no framework is detected the options use
plain HTML with inline styling.
"""

import html
import json
import logging
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Optional

from prdflow.errors import WorkflowError
from prdflow.lib.constants import MOCKUP_OPTION_COUNT
from prdflow.lib.validate import validate, validate_before_write

logger = logging.getLogger(__name__)

MOCKUPS_JSON = "mockups.json"
LETTERS = ["A", "B", "C"]


class MockupError(WorkflowError):
    pass


@dataclass
class FrameworkInfo:
    """Detected UI conventions."""
    framework: str  # react, vue, svelte, angular, html
    styling: str  # tailwind, bootstrap, inline
    signals: list[str] = field(default_factory=list)  # Files that decided it

    @property
    def detected(self) -> bool:
        return self.framework != "html" or self.styling != "inline"


@dataclass
class UiMockupOption:
    letter: str
    title: str
    summary: str
    layout: str
    framework: str
    markup: str


class FrameworkDetector:
    """Detects UI framework conventions from project config files."""

    PACKAGE_SIGNALS: dict[str, str] = {
        "react": "react",
        "next": "react",
        "vue": "vue",
        "nuxt": "vue",
        "svelte": "svelte",
        "@angular/core": "angular",
    }

    STYLE_SIGNALS: dict[str, str] = {
        "tailwindcss": "tailwind",
        "bootstrap": "bootstrap",
    }

    STYLE_FILES = {
        "tailwind.config.js": "tailwind",
        "tailwind.config.ts": "tailwind",
        "tailwind.config.cjs": "tailwind",
    }

    def detect(self, repo_path: Path) -> FrameworkInfo:
        framework = "html"
        styling = "inline"
        signals: list[str] = []

        package_json = repo_path / "package.json"
        if package_json.exists():
            deps = self._read_dependencies(package_json)
            for name, fw in self.PACKAGE_SIGNALS.items():
                if name in deps:
                    framework = fw
                    signals.append(f"package.json:{name}")
                    break
            for name, style in self.STYLE_SIGNALS.items():
                if name in deps:
                    styling = style
                    signals.append(f"package.json:{name}")
                    break

        if styling == "inline":
            for filename, style in self.STYLE_FILES.items():
                if (repo_path / filename).exists():
                    styling = style
                    signals.append(filename)
                    break

        info = FrameworkInfo(framework=framework, styling=styling, signals=signals)
        if not info.detected:
            logger.info(f"No UI framework detected in {repo_path}; falling back to inline styling")
        return info

    def _read_dependencies(self, package_json: Path) -> set[str]:
        try:
            data = json.loads(package_json.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Could not read {package_json}: {e}")
            return set()
        deps: set[str] = set()
        for key in ("dependencies", "devDependencies", "peerDependencies"):
            section = data.get(key)
            if isinstance(section, dict):
                deps.update(section)
        return deps


# Style vocabulary: key -> (tailwind classes, bootstrap classes, inline css)
STYLES: dict[str, tuple[str, str, str]] = {
    "panel": ("max-w-md mx-auto p-6 rounded-lg shadow bg-white", "card p-4 mx-auto",
              "max-width: 28rem; margin: 0 auto; padding: 1.5rem; border-radius: 8px; "
              "box-shadow: 0 1px 4px rgba(0,0,0,0.15); background: #fff"),
    "title": ("text-xl font-semibold mb-4", "h4 mb-3",
              "font-size: 1.25rem; font-weight: 600; margin-bottom: 1rem"),
    "text": ("text-gray-600 mb-4", "text-muted mb-3", "color: #555; margin-bottom: 1rem"),
    "input": ("w-full border rounded px-3 py-2 mb-4", "form-control mb-3",
              "width: 100%; border: 1px solid #ccc; border-radius: 4px; padding: 0.5rem; margin-bottom: 1rem"),
    "button": ("px-4 py-2 rounded bg-blue-600 text-white", "btn btn-primary",
               "padding: 0.5rem 1rem; border: none; border-radius: 4px; background: #2563eb; color: #fff"),
    "columns": ("grid grid-cols-3 gap-4", "row g-3", "display: grid; grid-template-columns: 1fr 2fr; gap: 1rem"),
    "list": ("col-span-1 border rounded p-2", "col-4 list-group",
             "border: 1px solid #ddd; border-radius: 4px; padding: 0.5rem"),
    "item": ("px-2 py-1 hover:bg-gray-100", "list-group-item", "padding: 0.25rem 0.5rem"),
    "detail": ("col-span-2 border rounded p-4", "col-8 card p-3",
               "border: 1px solid #ddd; border-radius: 4px; padding: 1rem"),
    "steps": ("flex gap-2 mb-4 text-sm", "nav nav-pills mb-3", "display: flex; gap: 0.5rem; margin-bottom: 1rem"),
    "step": ("px-2 py-1 rounded bg-gray-200", "nav-link", "padding: 0.25rem 0.5rem; border-radius: 4px; background: #e5e7eb"),
    "footer": ("flex justify-end gap-2", "d-flex justify-content-end gap-2",
               "display: flex; justify-content: flex-end; gap: 0.5rem"),
}


@dataclass
class Element:
    tag: str
    style: str
    text: str = ""
    children: list["Element"] = field(default_factory=list)


def _el(tag: str, style: str, text: str = "", *children: Element) -> Element:
    return Element(tag, style, text, list(children))


def _css_to_js(css: str) -> str:
    """'font-size: 1rem; color: #fff' -> "{ fontSize: '1rem', color: '#fff' }"."""
    pairs = []
    for decl in css.split(";"):
        if ":" not in decl:
            continue
        prop, value = decl.split(":", 1)
        parts = prop.strip().split("-")
        name = parts[0] + "".join(p.capitalize() for p in parts[1:])
        pairs.append(f"{name}: '{value.strip()}'")
    return "{ " + ", ".join(pairs) + " }"


def _attr(info: FrameworkInfo, style_key: str) -> str:
    tailwind, bootstrap, inline = STYLES[style_key]
    class_attr = "className" if info.framework == "react" else "class"
    if info.styling == "tailwind":
        return f'{class_attr}="{tailwind}"'
    if info.styling == "bootstrap":
        return f'{class_attr}="{bootstrap}"'
    if info.framework == "react":
        return f"style={{{_css_to_js(inline)}}}"
    return f'style="{inline}"'


def _text(text: str, info: FrameworkInfo, quote: bool = False) -> str:
    """Escape a text node or attribute value for the framework's markup."""
    escaped = html.escape(text, quote=quote)
    if info.framework == "html":
        return escaped
    # Braces open expressions in JSX and Svelte and interpolations in Vue and Angular
    return escaped.replace("{", "&#123;").replace("}", "&#125;")


def _render(element: Element, info: FrameworkInfo, depth: int) -> list[str]:
    pad = "  " * depth
    attr = _attr(info, element.style)
    if element.tag == "input":
        close = " />" if info.framework == "react" else ">"
        return [f'{pad}<input {attr} placeholder="{_text(element.text, info, quote=True)}"{close}']
    text = _text(element.text, info)
    if not element.children:
        return [f"{pad}<{element.tag} {attr}>{text}</{element.tag}>"]
    lines = [f"{pad}<{element.tag} {attr}>"]
    if text:
        lines.append(f"{pad}  {text}")
    for child in element.children:
        lines.extend(_render(child, info, depth + 1))
    lines.append(f"{pad}</{element.tag}>")
    return lines


def _component_name(feature: str, letter: str) -> str:
    return "".join(p.capitalize() for p in feature.split("-")) + f"Option{letter}"


def render_markup(tree: Element, info: FrameworkInfo, feature: str, letter: str) -> str:
    """Wrap an element tree in a self-contained component for the framework."""
    if info.framework == "react":
        body = _render(tree, info, 2)
        return "\n".join(
            [f"export function {_component_name(feature, letter)}() {{", "  return ("]
            + body + ["  );", "}"]
        )
    if info.framework == "vue":
        return "\n".join(["<template>"] + _render(tree, info, 1) + ["</template>"])
    if info.framework == "angular":
        name = _component_name(feature, letter)
        return "\n".join(
            [f"<!-- {name}.component.html -->"] + _render(tree, info, 0)
        )
    return "\n".join(_render(tree, info, 0))


def _layouts(title: str, action: str, goal: str) -> list[tuple[str, str, str, Element]]:
    """The three layout archetypes: (title, summary, layout, tree)."""
    single = _el(
        "div", "panel", "",
        _el("h2", "title", title),
        _el("p", "text", goal),
        _el("input", "input", "Enter details"),
        _el("div", "footer", "", _el("button", "button", action)),
    )
    list_detail = _el(
        "div", "columns", "",
        _el("ul", "list", "", _el("li", "item", "First item"), _el("li", "item", "Second item")),
        _el(
            "section", "detail", "",
            _el("h2", "title", title),
            _el("p", "text", goal),
            _el("div", "footer", "", _el("button", "button", action)),
        ),
    )
    wizard = _el(
        "div", "panel", "",
        _el("h2", "title", title),
        _el("nav", "steps", "", _el("span", "step", "1. Input"),
            _el("span", "step", "2. Review"), _el("span", "step", "3. Confirm")),
        _el("input", "input", "Step 1 details"),
        _el("div", "footer", "", _el("button", "button", "Next")),
    )
    return [
        ("Single panel", "Everything on one focused card with a single primary action.", "single-panel", single),
        ("List and detail", "A list of items beside the detail of the selected item.", "list-detail", list_detail),
        ("Step-by-step", "A short guided flow that ends with a review before confirming.", "wizard", wizard),
    ]


def generate_mockups(feature: str, goal: str, info: FrameworkInfo, action: Optional[str] = None) -> list[UiMockupOption]:
    """Build exactly three mockup options in the detected conventions."""
    title = feature.replace("-", " ").title()
    action = action or "Save"
    options = []
    for letter, (name, summary, layout, tree) in zip(LETTERS, _layouts(title, action, goal)):
        options.append(UiMockupOption(
            letter=letter,
            title=name,
            summary=summary,
            layout=layout,
            framework=f"{info.framework}/{info.styling}",
            markup=render_markup(tree, info, feature, letter),
        ))
    return options


def options_from_draft(data: dict, info: FrameworkInfo) -> list[UiMockupOption]:
    """Convert agent-drafted mockup JSON into options."""
    validate(data, "mockups")
    options = []
    for raw in data["options"]:
        options.append(UiMockupOption(
            letter=raw["letter"],
            title=raw["title"],
            summary=raw["summary"],
            layout=raw["layout"],
            framework=raw.get("framework") or f"{info.framework}/{info.styling}",
            markup=raw["markup"],
        ))
    if sorted(o.letter for o in options) != LETTERS:
        raise MockupError("Drafted mockups must be lettered A, B and C")
    return options


def save_mockups(
    options: list[UiMockupOption],
    info: FrameworkInfo,
    feature: str,
    feature_dir: Path,
    markdown_path: Path,
    selected: Optional[str] = None,
) -> None:
    if len(options) != MOCKUP_OPTION_COUNT:
        raise MockupError(f"Expected exactly {MOCKUP_OPTION_COUNT} mockup options, got {len(options)}")

    data = {
        "framework": info.framework,
        "styling": info.styling,
        "selected": selected,
        "options": [asdict(o) for o in options],
    }
    json_path = feature_dir / MOCKUPS_JSON
    validate_before_write(data, "mockups", json_path)
    json_path.write_text(json.dumps(data, indent=2))
    markdown_path.write_text(render_mockups_markdown(feature, options, info, selected))


def load_mockups(feature_dir: Path) -> tuple[list[UiMockupOption], FrameworkInfo, Optional[str]]:
    path = feature_dir / MOCKUPS_JSON
    if not path.exists():
        raise MockupError(f"No mockups proposed for '{feature_dir.name}'")
    data = json.loads(path.read_text())
    info = FrameworkInfo(framework=data.get("framework", "html"), styling=data.get("styling", "inline"))
    options = [UiMockupOption(**o) for o in data["options"]]
    return options, info, data.get("selected")


def find_option(options: list[UiMockupOption], letter: str) -> UiMockupOption:
    for option in options:
        if option.letter == letter.strip().upper():
            return option
    raise MockupError(f"No mockup option '{letter}' (choose A, B or C)")


def _fence_lang(framework: str) -> str:
    return {"react": "tsx", "vue": "vue", "svelte": "svelte"}.get(framework.split("/")[0], "html")


def render_mockups_markdown(
    feature: str,
    options: list[UiMockupOption],
    info: FrameworkInfo,
    selected: Optional[str] = None,
) -> str:
    lines = [
        f"# UI Mockups: {feature}",
        "",
        f"**Framework:** {info.framework} ({info.styling} styling)",
        f"**Selected:** {selected or '_pending_'}",
        "",
        f"Select one with `prd mockups {feature} --select <A|B|C>`.",
        "",
    ]
    for option in options:
        marker = " (selected)" if option.letter == selected else ""
        lines.extend([
            f"## Option {option.letter}: {option.title}{marker}",
            "",
            option.summary,
            "",
            f"```{_fence_lang(option.framework)}",
            option.markup,
            "```",
            "",
        ])
    return "\n".join(lines)
